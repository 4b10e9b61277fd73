import calendar
import datetime as _dt

# --------------------------------------------------------------------------- #
# 対象月 → 期間
# --------------------------------------------------------------------------- #
def parse_ym(value: str) -> tuple[int, int]:
    """'YYYY-MM' / 'YYYYMM' -> (year, month)"""
    raw = (value or "").strip().replace("/", "-")
    if "-" in raw:
        head, _, tail = raw.partition("-")
    elif len(raw) == 6:
        head, tail = raw[:4], raw[4:]
    else:
        raise ValueError(f"Invalid month: {value!r}")
    if len(head) != 4 or not head.isdigit() or not tail.isdigit():
        raise ValueError(f"Invalid month: {value!r}")
    year, month = int(head), int(tail)
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month: {value!r}")
    return year, month


def month_bounds(year: int, month: int) -> tuple[_dt.date, _dt.date]:
    """月初日と月末日（両端含む）"""
    last = calendar.monthrange(year, month)[1]
    return _dt.date(year, month, 1), _dt.date(year, month, last)


def resolve_period(period_month) -> tuple[_dt.date, _dt.date]:
    """
    対象月を (period_start, period_end) に変換する。
    - 'YYYY-MM' / 'YYYYMM' 文字列
    - date / datetime（その日を含む月）
    """
    if isinstance(period_month, _dt.datetime):
        period_month = period_month.date()
    if isinstance(period_month, _dt.date):
        return month_bounds(period_month.year, period_month.month)
    if isinstance(period_month, str):
        return month_bounds(*parse_ym(period_month))
    raise TypeError("period_month must be 'YYYY-MM', 'YYYYMM' or a date")


def parse_iso_date(value: str | None) -> _dt.date | None:
    """クエリ文字列の 'YYYY-MM-DD' を date に（空は None）"""
    if not value:
        return None
    try:
        return _dt.date.fromisoformat(value)
    except ValueError as exc:
        raise ValueError(f"Invalid date: {value!r}") from exc


# --------------------------------------------------------------------------- #
# 表示用
# --------------------------------------------------------------------------- #
def minutes_label(total_minutes: int | None) -> str:
    """分を 'H:MM' 形式に変換"""
    if not total_minutes:
        return "0:00"
    hours, minutes = divmod(int(total_minutes), 60)
    return f"{hours}:{minutes:02d}"
