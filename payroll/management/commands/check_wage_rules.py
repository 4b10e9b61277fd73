from datetime import timedelta

from django.conf import settings
from django.core.mail import send_mail
from django.core.management.base import BaseCommand, CommandError, CommandParser
from django.utils import timezone

from attendance_app.models import Client, Facility
from payroll.exceptions import RuleResolutionError
from payroll.repositories import DjangoPayrollStore
from payroll.rules import WageRuleResolver
from payroll.utils import month_bounds


class Command(BaseCommand):
    """工賃ルールの不備（壊れた JSON・適用ルールなし）を検出し、必要なら管理者へメールする"""

    help = "Reports malformed wage rules and clients without an applicable rule for a month"

    def add_arguments(self, parser: CommandParser):
        parser.add_argument("--facility", type=int, required=True)
        parser.add_argument("--year", type=int)
        parser.add_argument("--month", type=int)
        parser.add_argument("--email", action="store_true", help="結果を ADMINS にメール送信")

    def handle(self, *args, **opts):
        facility = Facility.objects.filter(pk=opts["facility"]).first()
        if facility is None:
            raise CommandError(f"Facility not found: {opts['facility']}")

        if opts["year"] and opts["month"]:
            year, month = opts["year"], opts["month"]
        else:
            target = timezone.localdate().replace(day=1) - timedelta(days=1)
            year, month = target.year, target.month
        try:
            start, end = month_bounds(year, month)
        except ValueError as exc:
            raise CommandError(str(exc)) from exc

        store = DjangoPayrollStore()
        rules = store.list_rules(facility.pk)
        resolver = WageRuleResolver(rules)

        broken = [r for r in rules if r.data_problems]
        # 対象: 期間内に勤怠のある利用者 + 利用中の利用者
        targets = sorted(
            set(store.list_clients_with_attendance(facility.pk, start, end))
            | set(store.list_active_clients(facility.pk))
        )
        missing: list[int] = []
        for client_id in targets:
            try:
                resolver.resolve_for_period(client_id, start, end)
            except RuleResolutionError:
                missing.append(client_id)

        label = f"{year:04d}-{month:02d}"
        if not broken and not missing:
            self.stdout.write(self.style.SUCCESS(f"✓ No wage rule issues for {facility.name} {label}"))
            return

        lines: list[str] = [f"【{facility.name} {label} 工賃ルールチェック】\n"]
        if broken:
            lines.append("\n■ 出来高単価・控除の形式不正（計算時は空として扱われます）")
            for r in broken:
                lines.extend(f"  - #{r.id} {r.name} | {p}" for p in r.data_problems)

        if missing:
            lines.append("\n■ 適用できる工賃ルールがない利用者")
            names = dict(
                (c.pk, c.full_name) for c in Client.objects.filter(pk__in=missing)
            )
            lines.extend(f"  - #{cid} {names.get(cid, '')}" for cid in missing)

        body = "\n".join(lines)
        self.stdout.write(body)

        if opts["email"]:
            subject = f"[工賃チェック] {facility.name} {label} の不備検出"
            send_mail(subject, body, settings.DEFAULT_FROM_EMAIL, [a[1] for a in settings.ADMINS])
            self.stdout.write(self.style.WARNING("✉︎ Issues emailed to ADMINS"))
