"""
payroll.exceptions
==================

工賃計算エンジンの例外階層。

    PayrollError
    +-- RuleResolutionError          per-client, run は継続（警告に記録）
    +-- MalformedRuleDataError       書き込み時は検証エラー / 読み込み時は空リスト + 警告
    +-- InvalidStateTransitionError  操作は失敗、部分的な変更なし
    +-- DuplicateActiveRunError      同一事業所・同一期間の未払い run が既に存在
    +-- PersistenceError             トランザクション失敗（全体をロールバック）
    +-- RecordLockedError            確定済み run に紐づくデータの変更
    +-- PayrollRunNotFoundError

各クラスは機械可読な ``code`` をクラス属性として持つ。
"""

from __future__ import annotations

from datetime import date


class PayrollError(Exception):
    """Base exception for the wage engine."""

    code: str = "PAYROLL_ERROR"


class RuleResolutionError(PayrollError):
    code: str = "NO_APPLICABLE_RULE"

    def __init__(self, client_id: int, on_date: date):
        self.client_id = client_id
        self.on_date = on_date
        super().__init__("no applicable wage rule")


class MalformedRuleDataError(PayrollError):
    """piece_rates / deductions の JSON が解釈できない。"""

    code: str = "MALFORMED_RULE_DATA"

    def __init__(self, field: str, detail: str):
        self.field = field
        self.detail = detail
        super().__init__(f"{field}: {detail}")


class InvalidStateTransitionError(PayrollError):
    code: str = "INVALID_STATE_TRANSITION"

    def __init__(self, run_id: int | None, current: str, target: str):
        self.run_id = run_id
        self.current = current
        self.target = target
        super().__init__(
            f"Payroll run {run_id} cannot move from '{current}' to '{target}'"
        )


class DuplicateActiveRunError(PayrollError):
    code: str = "DUPLICATE_ACTIVE_RUN"

    def __init__(self, facility_id: int, period_start: date, existing_id: int | None = None):
        self.facility_id = facility_id
        self.period_start = period_start
        self.existing_id = existing_id
        super().__init__(
            f"{period_start:%Y-%m} の給与計算は既に存在します（ID: {existing_id}）"
        )


class PersistenceError(PayrollError):
    code: str = "PERSISTENCE_ERROR"


class RecordLockedError(PayrollError):
    """確定済み（または支払済み）の run から参照されているレコードへの書き込み。"""

    code: str = "RECORD_LOCKED"

    def __init__(self, record: str, pk: int | None):
        self.record = record
        self.pk = pk
        super().__init__(f"{record} {pk} is locked by a confirmed payroll run")


class PayrollRunNotFoundError(PayrollError):
    code: str = "PAYROLL_RUN_NOT_FOUND"

    def __init__(self, run_id: int):
        self.run_id = run_id
        super().__init__(f"Payroll run not found: {run_id}")
