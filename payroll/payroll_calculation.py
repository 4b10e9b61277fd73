"""
payroll.payroll_calculation
===========================

利用者 1 人分の工賃計算（時給・日給・出来高・混合 + 控除）。

Public API
----------
- yen_round()             : 円未満四捨五入（ROUND_HALF_UP）
- PayrollLineDraft        : 計算結果（保存前の明細）
- CompensationCalculator  : ルール + 勤怠集計 + 作業集計 → PayrollLineDraft

丸めポリシー
------------
端数が出る金額（時給計算の基本工賃・作業種別ごとの出来高・定率控除）は
それぞれ Decimal で計算し、1 円単位に四捨五入する。
控除は控除前小計（基本 + 出来高）に対して計算し、控除同士は複利にしない。
支給額は 0 円未満にしない。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Final, Mapping

from payroll.aggregation import AttendanceSummary
from payroll.choices import CalculationType, DeductionKind
from payroll.rules import RuleSnapshot

__all__ = [
    "yen_round",
    "PayrollLineDraft",
    "CompensationCalculator",
]

_MINUTES_PER_HOUR: Final[Decimal] = Decimal(60)
_HUNDRED: Final[Decimal] = Decimal(100)


# --------------------------------------------------------------------------- #
# 1. Internal helpers
# --------------------------------------------------------------------------- #
def yen_round(value: int | Decimal) -> int:
    """1 円単位に四捨五入."""
    return int(Decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _plain(value: Decimal) -> str:
    """Decimal を指数表記なしの文字列に（'200.000' -> '200'）"""
    return format(value.normalize(), "f")


# --------------------------------------------------------------------------- #
# 2. Result
# --------------------------------------------------------------------------- #
@dataclass(frozen=True)
class PayrollLineDraft:
    rule_id: int | None
    work_days: int
    total_minutes: int
    base_amount: int
    piece_amount: int
    deductions_total: int
    net_amount: int
    breakdown: dict[str, Any] = field(default_factory=dict)

    @property
    def gross_amount(self) -> int:
        return self.base_amount + self.piece_amount


# --------------------------------------------------------------------------- #
# 3. Calculator
# --------------------------------------------------------------------------- #
class CompensationCalculator:
    """同じ入力には常に同じ出力を返す（時刻・乱数に依存しない）。"""

    def calculate(
        self,
        rule: RuleSnapshot,
        attendance: AttendanceSummary,
        work_log_totals: Mapping[str, Decimal],
    ) -> PayrollLineDraft:
        breakdown: dict[str, Any] = {
            "wage_rule_id": rule.id,
            "wage_rule_name": rule.name,
            "calculation_type": rule.calculation_type,
            "work_days": attendance.work_days,
            "total_minutes": attendance.total_minutes,
        }

        base_amount = self._base_amount(rule, attendance, breakdown)

        piece_amount = 0
        if rule.calculation_type in (CalculationType.PIECE_RATE, CalculationType.MIXED):
            piece_amount = self._piece_amount(rule, work_log_totals, breakdown)

        subtotal = base_amount + piece_amount
        deductions_total = self._deductions(rule, subtotal, breakdown)
        net_amount = max(0, subtotal - deductions_total)

        if rule.data_problems:
            breakdown["data_warnings"] = list(rule.data_problems)

        return PayrollLineDraft(
            rule_id=rule.id,
            work_days=attendance.work_days,
            total_minutes=attendance.total_minutes,
            base_amount=base_amount,
            piece_amount=piece_amount,
            deductions_total=deductions_total,
            net_amount=net_amount,
            breakdown=breakdown,
        )

    # ── 基本工賃 ─────────────────────────────────────────────
    def _base_amount(self, rule: RuleSnapshot, attendance: AttendanceSummary, breakdown: dict) -> int:
        ctype = rule.calculation_type
        if ctype == CalculationType.PIECE_RATE:
            return 0

        # 混合は時給を優先し、無ければ日給
        use_hourly = ctype == CalculationType.HOURLY or (
            ctype == CalculationType.MIXED and rule.hourly_rate
        )
        if use_hourly:
            rate = Decimal(rule.hourly_rate or 0)
            breakdown["hourly_rate"] = int(rate)
            return yen_round(rate * Decimal(attendance.total_minutes) / _MINUTES_PER_HOUR)

        rate = rule.daily_rate or 0
        breakdown["daily_rate"] = rate
        return rate * attendance.work_days

    # ── 出来高 ───────────────────────────────────────────────
    def _piece_amount(self, rule: RuleSnapshot, totals: Mapping[str, Decimal], breakdown: dict) -> int:
        unit_prices = rule.unit_prices
        details: list[dict[str, Any]] = []
        amount = 0
        for piece in rule.piece_rates:
            qty = totals.get(piece.work_type)
            if qty is None:
                continue
            subtotal = yen_round(piece.unit_price * qty)
            amount += subtotal
            details.append({
                "work_type": piece.work_type,
                "quantity": _plain(qty),
                "unit_price": _plain(piece.unit_price),
                "amount": subtotal,
            })

        # 単価表に無い作業種別は支給対象外（内訳にだけ残す）
        unmatched = [
            {"work_type": work_type, "quantity": _plain(totals[work_type])}
            for work_type in sorted(totals)
            if work_type not in unit_prices
        ]
        breakdown["piece_details"] = details
        breakdown["unmatched_work_types"] = unmatched
        return amount

    # ── 控除 ─────────────────────────────────────────────────
    def _deductions(self, rule: RuleSnapshot, subtotal: int, breakdown: dict) -> int:
        details: list[dict[str, Any]] = []
        total = 0
        for entry in rule.deductions:
            if entry.kind == DeductionKind.PERCENTAGE:
                amount = yen_round(Decimal(subtotal) * entry.amount / _HUNDRED)
            else:
                amount = yen_round(entry.amount)
            total += amount
            details.append({
                "name": entry.label,
                "type": entry.kind,
                "rate" if entry.kind == DeductionKind.PERCENTAGE else "fixed_amount": _plain(entry.amount),
                "amount": amount,
            })
        breakdown["deduction_details"] = details
        return total
