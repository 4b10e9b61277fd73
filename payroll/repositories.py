"""
payroll.repositories
====================

工賃計算エンジンが読み書きするストアの境界。

``PayrollStore`` は勤怠・作業記録・利用者・ルールの読み込みと、run の
トランザクション保存を定義する。``DjangoPayrollStore`` が ORM 実装で、
テストでは読み込み部分をメモリ上の偽物に差し替えられる。
"""

from __future__ import annotations

import datetime as _dt
from abc import ABC, abstractmethod
from typing import Sequence

from django.db import DatabaseError, IntegrityError, transaction

from attendance_app.models import AttendanceConfirmation, Client, Facility
from payroll.aggregation import ConfirmationRecord, WorkLogRecord
from payroll.choices import RunStatus
from payroll.exceptions import DuplicateActiveRunError, PersistenceError
from payroll.models import PayrollLine, PayrollRun, WageRule, WorkLog
from payroll.payroll_calculation import PayrollLineDraft
from payroll.rules import RuleSnapshot


class PayrollStore(ABC):
    # ── 読み込み ─────────────────────────────────────────────
    @abstractmethod
    def facility_exists(self, facility_id: int) -> bool:
        raise NotImplementedError

    @abstractmethod
    def list_confirmations(self, client_id: int, start: _dt.date, end: _dt.date) -> list[ConfirmationRecord]:
        raise NotImplementedError

    @abstractmethod
    def list_work_logs(self, client_id: int, start: _dt.date, end: _dt.date) -> list[WorkLogRecord]:
        raise NotImplementedError

    @abstractmethod
    def list_active_clients(self, facility_id: int) -> list[int]:
        raise NotImplementedError

    @abstractmethod
    def list_clients_with_attendance(self, facility_id: int, start: _dt.date, end: _dt.date) -> list[int]:
        raise NotImplementedError

    @abstractmethod
    def list_rules(self, facility_id: int) -> list[RuleSnapshot]:
        raise NotImplementedError

    @abstractmethod
    def find_active_run(self, facility_id: int, period_start: _dt.date) -> int | None:
        raise NotImplementedError

    # ── 書き込み ─────────────────────────────────────────────
    @abstractmethod
    def persist_run(
        self,
        facility_id: int,
        period_start: _dt.date,
        period_end: _dt.date,
        lines: Sequence[tuple[int, PayrollLineDraft]],
        warnings: list[dict],
        notes: str = "",
    ) -> PayrollRun:
        raise NotImplementedError

    @abstractmethod
    def replace_lines(
        self,
        run: PayrollRun,
        lines: Sequence[tuple[int, PayrollLineDraft]],
        warnings: list[dict],
    ) -> PayrollRun:
        raise NotImplementedError


class DjangoPayrollStore(PayrollStore):
    def facility_exists(self, facility_id):
        return Facility.objects.filter(pk=facility_id).exists()

    def list_confirmations(self, client_id, start, end):
        rows = (AttendanceConfirmation.objects
                .filter(client_id=client_id)
                .in_period(start, end)
                .order_by("date")
                .values_list("date", "status", "check_in_time", "check_out_time"))
        return [ConfirmationRecord(*row) for row in rows]

    def list_work_logs(self, client_id, start, end):
        rows = (WorkLog.objects
                .filter(client_id=client_id)
                .in_period(start, end)
                .order_by("date", "id")
                .values_list("date", "work_type", "quantity"))
        return [WorkLogRecord(*row) for row in rows]

    def list_active_clients(self, facility_id):
        return list(
            Client.objects.active()
            .filter(facility_id=facility_id)
            .order_by("id")
            .values_list("id", flat=True)
        )

    def list_clients_with_attendance(self, facility_id, start, end):
        return list(
            AttendanceConfirmation.objects
            .filter(client__facility_id=facility_id)
            .in_period(start, end)
            .order_by("client_id")
            .values_list("client_id", flat=True)
            .distinct()
        )

    def list_rules(self, facility_id):
        return [RuleSnapshot.from_model(r) for r in WageRule.objects.for_facility(facility_id).order_by("id")]

    def find_active_run(self, facility_id, period_start):
        return (PayrollRun.objects.active()
                .filter(facility_id=facility_id, period_start=period_start)
                .values_list("id", flat=True).first())

    # ------------------------------------------------------------------
    def _build_lines(self, run: PayrollRun, lines) -> list[PayrollLine]:
        return [
            PayrollLine(
                run=run,
                client_id=client_id,
                wage_rule_id=draft.rule_id,
                work_days=draft.work_days,
                total_minutes=draft.total_minutes,
                base_amount=draft.base_amount,
                piece_amount=draft.piece_amount,
                deductions_total=draft.deductions_total,
                net_amount=draft.net_amount,
                breakdown=draft.breakdown,
            )
            for client_id, draft in lines
        ]

    def persist_run(self, facility_id, period_start, period_end, lines, warnings, notes=""):
        """ヘッダと明細を 1 トランザクションで保存し、draft に進めて返す。"""
        try:
            with transaction.atomic():
                run = PayrollRun.objects.create(
                    facility_id=facility_id,
                    period_start=period_start,
                    period_end=period_end,
                    status=RunStatus.CALCULATING,
                    notes=notes or "",
                    warnings=warnings,
                )
                PayrollLine.objects.bulk_create(self._build_lines(run, lines))
                run.transition_to(RunStatus.DRAFT)
                run.save(update_fields=["status", "updated_at"])
        except IntegrityError as exc:
            existing = self.find_active_run(facility_id, period_start)
            if existing is not None:
                raise DuplicateActiveRunError(facility_id, period_start, existing) from exc
            raise PersistenceError(str(exc)) from exc
        except DatabaseError as exc:
            raise PersistenceError(str(exc)) from exc
        return run

    def replace_lines(self, run, lines, warnings):
        try:
            with transaction.atomic():
                PayrollLine.objects.filter(run=run).delete()
                PayrollLine.objects.bulk_create(self._build_lines(run, lines))
                run.warnings = warnings
                run.save(update_fields=["warnings", "updated_at"])
        except DatabaseError as exc:
            raise PersistenceError(str(exc)) from exc
        return run
