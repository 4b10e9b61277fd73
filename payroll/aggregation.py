"""
payroll.aggregation
===================

確定勤怠と作業記録を、計算に必要な数値へ集約する。

- ``summarize_attendance()``   : 出勤日数と総作業分数
- ``total_work_quantities()``  : 作業種別ごとの数量合計
- ``AttendanceAggregator`` / ``WorkLogAggregator`` :
    ストア（list_confirmations / list_work_logs を持つもの）から読み込んで集約

集約関数は取得済みデータに対する純粋関数なので、スレッドプールからも呼べる。
同一 (利用者, 日付) の重複確定は上流のデータ不整合として扱い、ここでは排除しない。
"""

from __future__ import annotations

import datetime as _dt
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from attendance_app.models import AttendanceConfirmation


@dataclass(frozen=True)
class ConfirmationRecord:
    date: _dt.date
    status: str
    check_in_time: _dt.datetime | None = None
    check_out_time: _dt.datetime | None = None


@dataclass(frozen=True)
class WorkLogRecord:
    date: _dt.date
    work_type: str
    quantity: Decimal | None = None


@dataclass(frozen=True)
class AttendanceSummary:
    work_days: int
    total_minutes: int


def _span_minutes(check_in: _dt.datetime | None, check_out: _dt.datetime | None) -> int:
    """退勤 − 出勤 を分単位（切り捨て）で返す。どちらか欠けていれば 0、逆転も 0。"""
    if check_in is None or check_out is None:
        return 0
    seconds = (check_out - check_in).total_seconds()
    if seconds <= 0:
        return 0
    return int(seconds // 60)


def summarize_attendance(confirmations: Iterable[ConfirmationRecord]) -> AttendanceSummary:
    work_days = 0
    total_minutes = 0
    for c in confirmations:
        if c.status not in AttendanceConfirmation.WORK_DAY_STATUSES:
            continue
        work_days += 1
        total_minutes += _span_minutes(c.check_in_time, c.check_out_time)
    return AttendanceSummary(work_days=work_days, total_minutes=total_minutes)


def total_work_quantities(logs: Iterable[WorkLogRecord]) -> dict[str, Decimal]:
    totals: dict[str, Decimal] = {}
    for log in logs:
        if log.quantity is None:
            continue
        qty = log.quantity if isinstance(log.quantity, Decimal) else Decimal(str(log.quantity))
        totals[log.work_type] = totals.get(log.work_type, Decimal("0")) + qty
    return totals


class AttendanceAggregator:
    def __init__(self, source):
        self.source = source

    def aggregate(self, client_id: int, period_start: _dt.date, period_end: _dt.date) -> AttendanceSummary:
        return summarize_attendance(
            self.source.list_confirmations(client_id, period_start, period_end)
        )


class WorkLogAggregator:
    def __init__(self, source):
        self.source = source

    def aggregate(self, client_id: int, period_start: _dt.date, period_end: _dt.date) -> dict[str, Decimal]:
        return total_work_quantities(
            self.source.list_work_logs(client_id, period_start, period_end)
        )
