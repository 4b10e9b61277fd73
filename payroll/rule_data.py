"""
payroll.rule_data
=================

WageRule の JSON 項目（出来高単価表・控除リスト）を型付きの値に変換する。

受け付ける形式
--------------
- piece_rates : ``{"封入作業": 5}`` もしくは
                ``[{"workType": "封入作業", "unitPrice": 5}, ...]``（``price`` も可）
- deductions  : ``[{"name": "昼食代", "type": "fixed", "amount": 500},
                  {"name": "協力金", "type": "percentage", "rate": 3}]``

``parse_piece_rates`` / ``parse_deductions`` は厳密に検証し、不正な値は
``MalformedRuleDataError`` を送出する（書き込み時の検証に使用）。
``parse_rule_data`` は計算時用で、不正な項目を空リストとして扱い問題点を返す。
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from payroll.choices import DeductionKind
from payroll.exceptions import MalformedRuleDataError

__all__ = [
    "PieceRate",
    "DeductionEntry",
    "parse_piece_rates",
    "parse_deductions",
    "parse_rule_data",
]


@dataclass(frozen=True)
class PieceRate:
    work_type: str
    unit_price: Decimal


@dataclass(frozen=True)
class DeductionEntry:
    label: str
    kind: str
    amount: Decimal  # fixed: 円 / percentage: %


# --------------------------------------------------------------------------- #
# helpers
# --------------------------------------------------------------------------- #
def _load(raw: Any, field: str) -> Any:
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8")
    if isinstance(raw, str):
        if not raw.strip():
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise MalformedRuleDataError(field, f"invalid JSON ({exc.msg})") from exc
    return raw


def _number(value: Any, field: str) -> Decimal:
    # bool は int のサブクラスなので先に弾く
    if isinstance(value, bool) or value is None:
        raise MalformedRuleDataError(field, f"not a number: {value!r}")
    try:
        num = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise MalformedRuleDataError(field, f"not a number: {value!r}") from exc
    if not num.is_finite():
        raise MalformedRuleDataError(field, f"not a finite number: {value!r}")
    if num < 0:
        raise MalformedRuleDataError(field, f"negative value: {value!r}")
    return num


def _first(entry: dict, *keys: str) -> Any:
    for key in keys:
        if key in entry:
            return entry[key]
    return None


# --------------------------------------------------------------------------- #
# public
# --------------------------------------------------------------------------- #
def parse_piece_rates(raw: Any) -> tuple[PieceRate, ...]:
    """出来高単価表を検証して PieceRate のタプル（定義順）を返す。"""
    field = "piece_rates"
    data = _load(raw, field)
    if data is None:
        return ()

    if isinstance(data, dict):
        pairs = list(data.items())
    elif isinstance(data, list):
        pairs = []
        for i, entry in enumerate(data):
            if not isinstance(entry, dict):
                raise MalformedRuleDataError(field, f"entry {i} is not an object")
            pairs.append((
                _first(entry, "workType", "work_type"),
                _first(entry, "unitPrice", "unit_price", "price"),
            ))
    else:
        raise MalformedRuleDataError(field, "must be an object or a list")

    rates: list[PieceRate] = []
    seen: set[str] = set()
    for work_type, price in pairs:
        if not isinstance(work_type, str) or not work_type.strip():
            raise MalformedRuleDataError(field, f"invalid work type: {work_type!r}")
        label = work_type.strip()
        if label in seen:
            raise MalformedRuleDataError(field, f"duplicate work type: {label}")
        seen.add(label)
        rates.append(PieceRate(work_type=label, unit_price=_number(price, field)))
    return tuple(rates)


def parse_deductions(raw: Any) -> tuple[DeductionEntry, ...]:
    """控除リストを検証して DeductionEntry のタプル（適用順）を返す。"""
    field = "deductions"
    data = _load(raw, field)
    if data is None:
        return ()
    if not isinstance(data, list):
        raise MalformedRuleDataError(field, "must be a list")

    entries: list[DeductionEntry] = []
    for i, entry in enumerate(data):
        if not isinstance(entry, dict):
            raise MalformedRuleDataError(field, f"entry {i} is not an object")

        kind = _first(entry, "type", "kind")
        if kind not in DeductionKind.values:
            raise MalformedRuleDataError(field, f"entry {i}: unknown type {kind!r}")

        if kind == DeductionKind.PERCENTAGE:
            amount = _number(_first(entry, "rate", "amount"), field)
            if amount > 100:
                raise MalformedRuleDataError(field, f"entry {i}: rate over 100%")
        else:
            amount = _number(_first(entry, "amount"), field)

        label = _first(entry, "name", "label") or ""
        if not isinstance(label, str):
            raise MalformedRuleDataError(field, f"entry {i}: invalid name {label!r}")
        entries.append(DeductionEntry(label=label, kind=str(kind), amount=amount))
    return tuple(entries)


def parse_rule_data(
    piece_rates: Any, deductions: Any
) -> tuple[tuple[PieceRate, ...], tuple[DeductionEntry, ...], list[MalformedRuleDataError]]:
    """
    計算時用の寛容なパース。

    解釈できない項目は空リストとして扱い、検出した問題を第 3 要素で返す。
    1 件の不正なルールで run 全体を止めないためのフォールバック。
    """
    problems: list[MalformedRuleDataError] = []
    try:
        pieces = parse_piece_rates(piece_rates)
    except MalformedRuleDataError as exc:
        pieces = ()
        problems.append(exc)
    try:
        deds = parse_deductions(deductions)
    except MalformedRuleDataError as exc:
        deds = ()
        problems.append(exc)
    return pieces, deds, problems
