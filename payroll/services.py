# payroll/services.py
"""
工賃計算サービス

公開 API
--------
- create_payroll_run(facility_id, period_month, *, notes="")
    事業所の対象月について run を作成し、利用者ごとの明細を保存して返す
- get_payroll_run(run_id)                -> (run, summary)
- confirm_payroll_run(run_id)            draft → confirmed
- mark_payroll_run_paid(run_id)          confirmed → paid
- list_payroll_runs(facility_id, *, status=None, month=None)
- recalculate_payroll_run(run_id)        draft のまま明細を作り直す

設計メモ
--------
- DB の読み込みはすべて呼び出しスレッドで行い、計算だけをスレッドプールに渡す
- ルールは run 開始時にスナップショットを取り、計算中は DB を見ない
- 適用ルールは有効期間が対象月と重なるもの（個人 > 事業所、valid_from が新しいもの）
- 出勤日 0 日の利用者は明細を作らない（警告も出さない）
- ルールが見つからない利用者は除外し、run.warnings に記録する
- ヘッダと明細は 1 トランザクションで保存（失敗時は全体ロールバック）
"""

from __future__ import annotations

import datetime as _dt
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Sequence

from django.conf import settings
from django.db import DatabaseError, transaction

from attendance_app.models import Facility

from payroll.aggregation import (
    ConfirmationRecord,
    WorkLogRecord,
    summarize_attendance,
    total_work_quantities,
)
from payroll.choices import RunStatus
from payroll.exceptions import (
    DuplicateActiveRunError,
    InvalidStateTransitionError,
    MalformedRuleDataError,
    PayrollRunNotFoundError,
    PersistenceError,
    RuleResolutionError,
)
from payroll.models import PayrollRun
from payroll.payroll_calculation import CompensationCalculator, PayrollLineDraft
from payroll.repositories import DjangoPayrollStore, PayrollStore
from payroll.rules import RuleSnapshot, WageRuleResolver
from payroll.utils import resolve_period

logger = logging.getLogger(__name__)


# =============================================================================
# データ構造
# =============================================================================

@dataclass(frozen=True)
class ClientInputs:
    """1 利用者分の計算入力（取得済み）"""
    client_id: int
    confirmations: tuple[ConfirmationRecord, ...]
    work_logs: tuple[WorkLogRecord, ...]


@dataclass(frozen=True)
class ClientOutcome:
    client_id: int
    draft: PayrollLineDraft | None = None
    warning: dict | None = None


def _warning(code: str, message: str, *, client_id=None, rule_id=None, excluded=False) -> dict:
    return {
        "code": code,
        "client_id": client_id,
        "rule_id": rule_id,
        "message": message,
        "excluded": excluded,
    }


# =============================================================================
# Orchestrator
# =============================================================================

class PayrollRunOrchestrator:
    """run の作成と状態遷移。store / calculator は差し替え可能。"""

    def __init__(
        self,
        store: PayrollStore | None = None,
        *,
        max_workers: int | None = None,
        calculator: CompensationCalculator | None = None,
    ):
        self.store = store or DjangoPayrollStore()
        self.max_workers = max(1, int(max_workers or getattr(settings, "PAYROLL_MAX_WORKERS", 4)))
        self.calculator = calculator or CompensationCalculator()

    # ------------------------------------------------------------------
    # 計算
    # ------------------------------------------------------------------
    def _compute_client(self, resolver: WageRuleResolver, period_start: _dt.date,
                        period_end: _dt.date, inputs: ClientInputs) -> ClientOutcome:
        """スレッドプール上で実行される。DB には触れない。"""
        attendance = summarize_attendance(inputs.confirmations)
        if attendance.work_days == 0:
            return ClientOutcome(inputs.client_id)

        try:
            rule = resolver.resolve_for_period(inputs.client_id, period_start, period_end)
        except RuleResolutionError as exc:
            return ClientOutcome(
                inputs.client_id,
                warning=_warning(exc.code, str(exc), client_id=inputs.client_id, excluded=True),
            )

        totals = total_work_quantities(inputs.work_logs)
        return ClientOutcome(inputs.client_id, draft=self.calculator.calculate(rule, attendance, totals))

    def compute(
        self, facility_id: int, period_start: _dt.date, period_end: _dt.date
    ) -> tuple[list[tuple[int, PayrollLineDraft]], list[dict]]:
        """明細案 [(client_id, draft)] と警告リストを返す（保存はしない）。"""
        rules: Sequence[RuleSnapshot] = self.store.list_rules(facility_id)
        resolver = WageRuleResolver(rules)

        # ---- 読み込み（呼び出しスレッド）----
        client_ids = self.store.list_clients_with_attendance(facility_id, period_start, period_end)
        inputs = [
            ClientInputs(
                client_id=cid,
                confirmations=tuple(self.store.list_confirmations(cid, period_start, period_end)),
                work_logs=tuple(self.store.list_work_logs(cid, period_start, period_end)),
            )
            for cid in client_ids
        ]

        # ---- 計算（入力順を保つ）----
        def _run(item: ClientInputs) -> ClientOutcome:
            return self._compute_client(resolver, period_start, period_end, item)

        if self.max_workers == 1 or len(inputs) <= 1:
            outcomes = [_run(item) for item in inputs]
        else:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                outcomes = list(pool.map(_run, inputs))

        lines: list[tuple[int, PayrollLineDraft]] = []
        warnings: list[dict] = []
        used_rule_ids: set[int] = set()
        for outcome in outcomes:
            if outcome.warning is not None:
                logger.warning(
                    "Client %s excluded from payroll %s: %s",
                    outcome.client_id, f"{period_start:%Y-%m}", outcome.warning["message"],
                )
                warnings.append(outcome.warning)
            if outcome.draft is not None:
                lines.append((outcome.client_id, outcome.draft))
                if outcome.draft.rule_id is not None:
                    used_rule_ids.add(outcome.draft.rule_id)

        # 壊れた JSON を含むルールが実際に使われた場合だけ警告に残す
        for rule in rules:
            if rule.id in used_rule_ids:
                for problem in rule.data_problems:
                    warnings.append(_warning(MalformedRuleDataError.code, problem, rule_id=rule.id))

        return lines, warnings

    # ------------------------------------------------------------------
    # 作成
    # ------------------------------------------------------------------
    def create(self, facility_id: int, period_month, *, notes: str = "") -> PayrollRun:
        period_start, period_end = resolve_period(period_month)
        if not self.store.facility_exists(facility_id):
            raise Facility.DoesNotExist(f"Facility not found: {facility_id}")

        existing = self.store.find_active_run(facility_id, period_start)
        if existing is not None:
            raise DuplicateActiveRunError(facility_id, period_start, existing)

        lines, warnings = self.compute(facility_id, period_start, period_end)
        run = self.store.persist_run(
            facility_id, period_start, period_end, lines, warnings, notes=notes
        )
        logger.info(
            "Payroll run %s created: facility=%s period=%s lines=%d warnings=%d",
            run.pk, facility_id, run.period_label, len(lines), len(warnings),
        )
        return run

    # ------------------------------------------------------------------
    # 状態遷移
    # ------------------------------------------------------------------
    def _locked_run(self, run_id: int) -> PayrollRun:
        try:
            return PayrollRun.objects.select_for_update().get(pk=run_id)
        except PayrollRun.DoesNotExist:
            raise PayrollRunNotFoundError(run_id) from None

    def _transition(self, run_id: int, target: str) -> PayrollRun:
        try:
            with transaction.atomic():
                run = self._locked_run(run_id)
                run.transition_to(target)
                run.save(update_fields=["status", "confirmed_at", "paid_at", "updated_at"])
        except DatabaseError as exc:
            raise PersistenceError(str(exc)) from exc
        logger.info("Payroll run %s moved to %s", run.pk, run.status)
        return run

    def confirm(self, run_id: int) -> PayrollRun:
        return self._transition(run_id, RunStatus.CONFIRMED)

    def mark_paid(self, run_id: int) -> PayrollRun:
        return self._transition(run_id, RunStatus.PAID)

    def recalculate(self, run_id: int) -> PayrollRun:
        """draft の run を現在のデータで計算し直す（明細と警告を置き換え）。"""
        try:
            with transaction.atomic():
                run = self._locked_run(run_id)
                if run.status != RunStatus.DRAFT:
                    raise InvalidStateTransitionError(run.pk, run.status, RunStatus.DRAFT)
                lines, warnings = self.compute(run.facility_id, run.period_start, run.period_end)
                self.store.replace_lines(run, lines, warnings)
        except DatabaseError as exc:
            raise PersistenceError(str(exc)) from exc
        logger.info("Payroll run %s recalculated: lines=%d", run.pk, len(lines))
        return run

    # ------------------------------------------------------------------
    # 参照
    # ------------------------------------------------------------------
    def get(self, run_id: int) -> tuple[PayrollRun, dict[str, int]]:
        try:
            run = PayrollRun.objects.select_related("facility").get(pk=run_id)
        except PayrollRun.DoesNotExist:
            raise PayrollRunNotFoundError(run_id) from None
        return run, run.summary()

    def list_runs(self, facility_id: int, *, status: str | None = None, month=None):
        qs = PayrollRun.objects.for_facility(facility_id)
        if status:
            qs = qs.filter(status=status)
        if month:
            period_start, _ = resolve_period(month)
            qs = qs.filter(period_start=period_start)
        return qs


# =============================================================================
# モジュールレベル API
# =============================================================================

def create_payroll_run(facility_id: int, period_month, *, notes: str = "") -> PayrollRun:
    return PayrollRunOrchestrator().create(facility_id, period_month, notes=notes)


def get_payroll_run(run_id: int) -> tuple[PayrollRun, dict[str, int]]:
    return PayrollRunOrchestrator().get(run_id)


def confirm_payroll_run(run_id: int) -> PayrollRun:
    return PayrollRunOrchestrator().confirm(run_id)


def mark_payroll_run_paid(run_id: int) -> PayrollRun:
    return PayrollRunOrchestrator().mark_paid(run_id)


def list_payroll_runs(facility_id: int, *, status: str | None = None, month=None):
    return PayrollRunOrchestrator().list_runs(facility_id, status=status, month=month)


def recalculate_payroll_run(run_id: int) -> PayrollRun:
    return PayrollRunOrchestrator().recalculate(run_id)
