import datetime as _dt
from decimal import Decimal

from django.test import SimpleTestCase

from payroll.aggregation import (
    AttendanceAggregator,
    ConfirmationRecord,
    WorkLogAggregator,
    WorkLogRecord,
    summarize_attendance,
    total_work_quantities,
)

UTC = _dt.timezone.utc


def at(day, hour, minute=0, second=0):
    return _dt.datetime(2024, 6, day, hour, minute, second, tzinfo=UTC)


class FakeSource:
    """list_confirmations / list_work_logs だけを持つメモリ上のストア"""

    def __init__(self, confirmations=None, work_logs=None):
        self.confirmations = confirmations or {}
        self.work_logs = work_logs or {}
        self.calls = []

    def list_confirmations(self, client_id, start, end):
        self.calls.append(("confirmations", client_id, start, end))
        return [c for c in self.confirmations.get(client_id, []) if start <= c.date <= end]

    def list_work_logs(self, client_id, start, end):
        self.calls.append(("work_logs", client_id, start, end))
        return [w for w in self.work_logs.get(client_id, []) if start <= w.date <= end]


class SummarizeAttendanceTest(SimpleTestCase):
    def test_work_day_statuses(self):
        records = [
            ConfirmationRecord(_dt.date(2024, 6, 3), "present", at(3, 9), at(3, 17)),
            ConfirmationRecord(_dt.date(2024, 6, 4), "late", at(4, 10), at(4, 17)),
            ConfirmationRecord(_dt.date(2024, 6, 5), "early_leave", at(5, 9), at(5, 12)),
            ConfirmationRecord(_dt.date(2024, 6, 6), "half_day", at(6, 9), at(6, 12)),
            ConfirmationRecord(_dt.date(2024, 6, 7), "absent"),
            ConfirmationRecord(_dt.date(2024, 6, 10), "no_show", at(10, 9), at(10, 17)),
        ]
        summary = summarize_attendance(records)
        self.assertEqual(summary.work_days, 4)
        self.assertEqual(summary.total_minutes, 480 + 420 + 180 + 180)

    def test_minutes_floor_and_missing_or_reversed_times(self):
        records = [
            # 6 時間 30 分 59 秒 → 390 分
            ConfirmationRecord(_dt.date(2024, 6, 3), "present", at(3, 9), at(3, 15, 30, 59)),
            ConfirmationRecord(_dt.date(2024, 6, 4), "present", at(4, 9), None),
            ConfirmationRecord(_dt.date(2024, 6, 5), "present", at(5, 17), at(5, 9)),
        ]
        summary = summarize_attendance(records)
        self.assertEqual(summary.work_days, 3)
        self.assertEqual(summary.total_minutes, 390)

    def test_empty(self):
        summary = summarize_attendance([])
        self.assertEqual((summary.work_days, summary.total_minutes), (0, 0))


class WorkQuantitiesTest(SimpleTestCase):
    def test_sums_per_type_and_skips_null(self):
        totals = total_work_quantities([
            WorkLogRecord(_dt.date(2024, 6, 3), "封入作業", Decimal("120")),
            WorkLogRecord(_dt.date(2024, 6, 4), "封入作業", Decimal("80.5")),
            WorkLogRecord(_dt.date(2024, 6, 4), "検品", None),
            WorkLogRecord(_dt.date(2024, 6, 5), "検品", 50),
        ])
        self.assertEqual(totals, {"封入作業": Decimal("200.5"), "検品": Decimal("50")})


class AggregatorTest(SimpleTestCase):
    def test_reads_period_from_source(self):
        source = FakeSource(
            confirmations={1: [
                ConfirmationRecord(_dt.date(2024, 5, 31), "present", at(3, 9), at(3, 17)),
                ConfirmationRecord(_dt.date(2024, 6, 3), "present", at(3, 9), at(3, 17)),
            ]},
            work_logs={1: [
                WorkLogRecord(_dt.date(2024, 6, 3), "梱包", Decimal("30")),
                WorkLogRecord(_dt.date(2024, 7, 1), "梱包", Decimal("99")),
            ]},
        )
        start, end = _dt.date(2024, 6, 1), _dt.date(2024, 6, 30)

        attendance = AttendanceAggregator(source).aggregate(1, start, end)
        self.assertEqual((attendance.work_days, attendance.total_minutes), (1, 480))

        totals = WorkLogAggregator(source).aggregate(1, start, end)
        self.assertEqual(totals, {"梱包": Decimal("30")})
        self.assertIn(("work_logs", 1, start, end), source.calls)

    def test_unknown_client_is_empty(self):
        source = FakeSource()
        start, end = _dt.date(2024, 6, 1), _dt.date(2024, 6, 30)
        self.assertEqual(AttendanceAggregator(source).aggregate(99, start, end).work_days, 0)
        self.assertEqual(WorkLogAggregator(source).aggregate(99, start, end), {})
