"""
payroll.rules
=============

工賃ルールの解決。

- ``RuleSnapshot``     : WageRule の不変コピー。run 開始時に 1 度だけ作成し、
                         計算中にルールが編集されても結果が変わらないようにする。
- ``WageRuleResolver`` : 利用者 + 日付（または対象期間）から適用ルールを 1 件選ぶ。

選択順
------
1. 有効期間（valid_from <= 日付 <= valid_until / null は無期限）で絞り込み。
   月次計算では有効期間が対象期間と 1 日でも重なるルールを候補にする
2. 個人ルール > 事業所デフォルト（client = null）
3. valid_from が新しいもの
4. デフォルトフラグ → id が大きいもの（決定的なタイブレーク）
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Iterable

from payroll.exceptions import RuleResolutionError
from payroll.rule_data import DeductionEntry, PieceRate, parse_rule_data

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RuleSnapshot:
    id: int | None
    client_id: int | None
    name: str
    calculation_type: str
    hourly_rate: int | None = None
    daily_rate: int | None = None
    piece_rates: tuple[PieceRate, ...] = ()
    deductions: tuple[DeductionEntry, ...] = ()
    valid_from: date = date.min
    valid_until: date | None = None
    is_default: bool = False
    # 計算時に空リスト扱いにした項目の説明
    data_problems: tuple[str, ...] = ()

    def is_valid_on(self, target: date) -> bool:
        return self.overlaps(target, target)

    def overlaps(self, start: date, end: date) -> bool:
        if self.valid_from > end:
            return False
        return self.valid_until is None or self.valid_until >= start

    @property
    def unit_prices(self) -> dict[str, object]:
        return {p.work_type: p.unit_price for p in self.piece_rates}

    @classmethod
    def from_model(cls, rule) -> "RuleSnapshot":
        pieces, deductions, problems = parse_rule_data(rule.piece_rates, rule.deductions)
        for problem in problems:
            logger.warning("Wage rule %s has malformed %s: %s", rule.pk, problem.field, problem.detail)
        return cls(
            id=rule.pk,
            client_id=rule.client_id,
            name=rule.name,
            calculation_type=rule.calculation_type,
            hourly_rate=rule.hourly_rate,
            daily_rate=rule.daily_rate,
            piece_rates=pieces,
            deductions=deductions,
            valid_from=rule.valid_from,
            valid_until=rule.valid_until,
            is_default=rule.is_default,
            data_problems=tuple(str(p) for p in problems),
        )


class WageRuleResolver:
    """与えられたルール集合（1 事業所分）から適用ルールを選ぶ。副作用なし。"""

    def __init__(self, rules: Iterable[RuleSnapshot]):
        self._rules: tuple[RuleSnapshot, ...] = tuple(rules)

    @property
    def rules(self) -> tuple[RuleSnapshot, ...]:
        return self._rules

    def resolve(self, client_id: int, on_date: date) -> RuleSnapshot:
        """on_date 時点で有効なルールから選ぶ"""
        return self._pick(client_id, [r for r in self._rules if r.is_valid_on(on_date)], on_date)

    def resolve_for_period(self, client_id: int, start: date, end: date) -> RuleSnapshot:
        """有効期間が [start, end] と 1 日でも重なるルールから選ぶ（月次計算用）"""
        return self._pick(client_id, [r for r in self._rules if r.overlaps(start, end)], end)

    @staticmethod
    def _pick(client_id: int, valid: list[RuleSnapshot], on_date: date) -> RuleSnapshot:
        pool = [r for r in valid if r.client_id is not None and r.client_id == client_id]
        if not pool:
            pool = [r for r in valid if r.client_id is None]
        if not pool:
            raise RuleResolutionError(client_id, on_date)
        return max(pool, key=lambda r: (r.valid_from, r.is_default, r.id or 0))
