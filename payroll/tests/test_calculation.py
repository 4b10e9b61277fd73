from datetime import date
from decimal import Decimal

from django.test import SimpleTestCase

from payroll.aggregation import AttendanceSummary
from payroll.payroll_calculation import CompensationCalculator, yen_round
from payroll.rule_data import parse_deductions, parse_piece_rates
from payroll.rules import RuleSnapshot


def rule(calculation_type, *, hourly_rate=None, daily_rate=None, piece_rates=None, deductions=None,
         data_problems=()):
    return RuleSnapshot(
        id=10,
        client_id=None,
        name="標準",
        calculation_type=calculation_type,
        hourly_rate=hourly_rate,
        daily_rate=daily_rate,
        piece_rates=parse_piece_rates(piece_rates),
        deductions=parse_deductions(deductions),
        valid_from=date(2024, 4, 1),
        data_problems=data_problems,
    )


class YenRoundTest(SimpleTestCase):
    def test_half_up(self):
        self.assertEqual(yen_round(Decimal("0.5")), 1)
        self.assertEqual(yen_round(Decimal("1.49")), 1)
        self.assertEqual(yen_round(Decimal("2.5")), 3)
        self.assertEqual(yen_round(7), 7)


class CompensationCalculatorTest(SimpleTestCase):
    def setUp(self):
        self.calc = CompensationCalculator()

    def test_hourly(self):
        draft = self.calc.calculate(
            rule("hourly", hourly_rate=1000), AttendanceSummary(work_days=2, total_minutes=960), {}
        )
        self.assertEqual(draft.base_amount, 16000)
        self.assertEqual(draft.piece_amount, 0)
        self.assertEqual(draft.deductions_total, 0)
        self.assertEqual(draft.net_amount, 16000)
        self.assertEqual(draft.breakdown["hourly_rate"], 1000)
        self.assertEqual(draft.rule_id, 10)

    def test_hourly_fraction_rounds_half_up(self):
        # 1000 × 61 / 60 = 1016.66…
        draft = self.calc.calculate(
            rule("hourly", hourly_rate=1000), AttendanceSummary(work_days=1, total_minutes=61), {}
        )
        self.assertEqual(draft.base_amount, 1017)

    def test_piece_rate_lists_unmatched_work_types(self):
        draft = self.calc.calculate(
            rule("piece_rate", hourly_rate=900, piece_rates={"封入作業": 5}),
            AttendanceSummary(work_days=3, total_minutes=600),
            {"封入作業": Decimal("200"), "検品": Decimal("50")},
        )
        self.assertEqual(draft.base_amount, 0)
        self.assertEqual(draft.piece_amount, 1000)
        self.assertEqual(draft.net_amount, 1000)
        self.assertEqual(draft.breakdown["piece_details"], [
            {"work_type": "封入作業", "quantity": "200", "unit_price": "5", "amount": 1000},
        ])
        self.assertEqual(draft.breakdown["unmatched_work_types"], [{"work_type": "検品", "quantity": "50"}])

    def test_daily_with_fixed_deduction(self):
        draft = self.calc.calculate(
            rule("daily", daily_rate=3000, deductions=[{"name": "昼食代", "type": "fixed", "amount": 500}]),
            AttendanceSummary(work_days=4, total_minutes=0),
            {},
        )
        self.assertEqual(draft.base_amount, 12000)
        self.assertEqual(draft.deductions_total, 500)
        self.assertEqual(draft.net_amount, 11500)
        self.assertEqual(draft.breakdown["deduction_details"], [
            {"name": "昼食代", "type": "fixed", "fixed_amount": "500", "amount": 500},
        ])

    def test_mixed_hourly_plus_piece(self):
        draft = self.calc.calculate(
            rule("mixed", hourly_rate=1200, piece_rates={"梱包": 10}),
            AttendanceSummary(work_days=2, total_minutes=600),
            {"梱包": Decimal("30")},
        )
        self.assertEqual(draft.base_amount, 12000)
        self.assertEqual(draft.piece_amount, 300)
        self.assertEqual(draft.net_amount, 12300)

    def test_mixed_without_hourly_uses_daily(self):
        draft = self.calc.calculate(
            rule("mixed", daily_rate=2000, piece_rates={"梱包": 10}),
            AttendanceSummary(work_days=3, total_minutes=900),
            {"梱包": Decimal("5")},
        )
        self.assertEqual(draft.base_amount, 6000)
        self.assertEqual(draft.piece_amount, 50)
        self.assertEqual(draft.breakdown["daily_rate"], 2000)

    def test_percentage_deductions_do_not_compound(self):
        draft = self.calc.calculate(
            rule("daily", daily_rate=1000, deductions=[
                {"name": "協力金", "type": "percentage", "rate": 10},
                {"name": "積立", "type": "percentage", "rate": 10},
            ]),
            AttendanceSummary(work_days=10, total_minutes=0),
            {},
        )
        # どちらも控除前小計 10000 円に対して計算
        self.assertEqual([d["amount"] for d in draft.breakdown["deduction_details"]], [1000, 1000])
        self.assertEqual(draft.net_amount, 8000)

    def test_net_never_negative(self):
        draft = self.calc.calculate(
            rule("daily", daily_rate=1000, deductions=[{"name": "昼食代", "type": "fixed", "amount": 5000}]),
            AttendanceSummary(work_days=2, total_minutes=0),
            {},
        )
        self.assertEqual(draft.deductions_total, 5000)
        self.assertEqual(draft.net_amount, 0)

    def test_components_add_up(self):
        draft = self.calc.calculate(
            rule("mixed", hourly_rate=950, piece_rates={"封入作業": "1.5", "梱包": 12},
                 deductions=[{"name": "昼食代", "type": "fixed", "amount": 300},
                             {"name": "協力金", "type": "percentage", "rate": "2.5"}]),
            AttendanceSummary(work_days=5, total_minutes=1234),
            {"封入作業": Decimal("333"), "梱包": Decimal("7")},
        )
        self.assertEqual(draft.gross_amount, draft.base_amount + draft.piece_amount)
        self.assertEqual(
            sum(d["amount"] for d in draft.breakdown["piece_details"]), draft.piece_amount
        )
        self.assertEqual(
            sum(d["amount"] for d in draft.breakdown["deduction_details"]), draft.deductions_total
        )
        self.assertEqual(draft.net_amount, max(0, draft.gross_amount - draft.deductions_total))

    def test_deterministic(self):
        args = (
            rule("mixed", hourly_rate=1100, piece_rates={"梱包": 3},
                 deductions=[{"name": "協力金", "type": "percentage", "rate": 3}]),
            AttendanceSummary(work_days=4, total_minutes=1000),
            {"梱包": Decimal("41")},
        )
        self.assertEqual(self.calc.calculate(*args), CompensationCalculator().calculate(*args))

    def test_data_problems_are_reported(self):
        draft = self.calc.calculate(
            rule("piece_rate", data_problems=("piece_rates: invalid JSON",)),
            AttendanceSummary(work_days=1, total_minutes=60),
            {"梱包": Decimal("10")},
        )
        self.assertEqual(draft.piece_amount, 0)
        self.assertEqual(draft.breakdown["data_warnings"], ["piece_rates: invalid JSON"])
