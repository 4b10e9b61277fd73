from datetime import date

from django.test import SimpleTestCase

from payroll.exceptions import RuleResolutionError
from payroll.rules import RuleSnapshot, WageRuleResolver


def snapshot(rule_id, *, client_id=None, valid_from=date(2024, 1, 1), valid_until=None, is_default=False):
    return RuleSnapshot(
        id=rule_id,
        client_id=client_id,
        name=f"rule-{rule_id}",
        calculation_type="hourly",
        hourly_rate=1000,
        valid_from=valid_from,
        valid_until=valid_until,
        is_default=is_default,
    )


class WageRuleResolverTest(SimpleTestCase):
    def test_client_rule_beats_newer_facility_default(self):
        resolver = WageRuleResolver([
            snapshot(1, client_id=7, valid_from=date(2023, 4, 1)),
            snapshot(2, valid_from=date(2024, 4, 1), is_default=True),
        ])
        self.assertEqual(resolver.resolve(7, date(2024, 6, 30)).id, 1)
        # 他の利用者は事業所デフォルト
        self.assertEqual(resolver.resolve(8, date(2024, 6, 30)).id, 2)

    def test_latest_valid_from_wins(self):
        resolver = WageRuleResolver([
            snapshot(1, client_id=7, valid_from=date(2024, 1, 1)),
            snapshot(2, client_id=7, valid_from=date(2024, 4, 1)),
            snapshot(3, client_id=7, valid_from=date(2024, 7, 1)),
        ])
        self.assertEqual(resolver.resolve(7, date(2024, 6, 30)).id, 2)

    def test_expired_client_rule_falls_back_to_facility_wide(self):
        resolver = WageRuleResolver([
            snapshot(1, client_id=7, valid_until=date(2024, 5, 31)),
            snapshot(2),
        ])
        self.assertEqual(resolver.resolve(7, date(2024, 6, 30)).id, 2)
        # 終了日当日はまだ有効
        self.assertEqual(resolver.resolve(7, date(2024, 5, 31)).id, 1)

    def test_tie_break_default_flag_then_highest_id(self):
        resolver = WageRuleResolver([
            snapshot(4),
            snapshot(3, is_default=True),
            snapshot(5),
        ])
        self.assertEqual(resolver.resolve(1, date(2024, 6, 30)).id, 3)

        resolver = WageRuleResolver([snapshot(4), snapshot(9), snapshot(5)])
        self.assertEqual(resolver.resolve(1, date(2024, 6, 30)).id, 9)

    def test_no_applicable_rule(self):
        resolver = WageRuleResolver([snapshot(1, valid_from=date(2025, 1, 1))])
        with self.assertRaises(RuleResolutionError) as ctx:
            resolver.resolve(7, date(2024, 6, 30))
        self.assertEqual(str(ctx.exception), "no applicable wage rule")
        self.assertEqual(ctx.exception.client_id, 7)
        self.assertEqual(ctx.exception.code, "NO_APPLICABLE_RULE")

    def test_same_inputs_same_rule(self):
        rules = [snapshot(i, client_id=7 if i % 2 else None) for i in range(1, 8)]
        first = WageRuleResolver(rules).resolve(7, date(2024, 6, 30))
        again = WageRuleResolver(list(reversed(rules))).resolve(7, date(2024, 6, 30))
        self.assertEqual(first, again)

    def test_period_resolution_accepts_rules_overlapping_the_month(self):
        june = (date(2024, 6, 1), date(2024, 6, 30))
        resolver = WageRuleResolver([snapshot(1, valid_until=date(2024, 6, 20))])
        # 月末時点では失効しているが、6/1〜6/20 は有効
        with self.assertRaises(RuleResolutionError):
            resolver.resolve(7, june[1])
        self.assertEqual(resolver.resolve_for_period(7, *june).id, 1)

    def test_period_resolution_keeps_scope_and_latest_valid_from(self):
        june = (date(2024, 6, 1), date(2024, 6, 30))
        resolver = WageRuleResolver([
            snapshot(1, client_id=7, valid_until=date(2024, 6, 10)),
            snapshot(2, client_id=7, valid_from=date(2024, 6, 15)),
            snapshot(3, valid_from=date(2024, 6, 20)),
            snapshot(4, client_id=7, valid_from=date(2024, 7, 1)),
            snapshot(5, client_id=7, valid_until=date(2024, 5, 31)),
        ])
        self.assertEqual(resolver.resolve_for_period(7, *june).id, 2)
        self.assertEqual(resolver.resolve_for_period(8, *june).id, 3)

        with self.assertRaises(RuleResolutionError):
            WageRuleResolver([snapshot(5, valid_until=date(2024, 5, 31))]).resolve_for_period(7, *june)
