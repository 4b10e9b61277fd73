from datetime import timedelta

from django.core.exceptions import ObjectDoesNotExist
from django.core.management.base import BaseCommand, CommandError, CommandParser
from django.utils import timezone

from payroll.exceptions import PayrollError
from payroll.services import create_payroll_run
from payroll.utils import minutes_label


class Command(BaseCommand):
    help = "事業所の月次工賃計算を実行する（省略時は前月分）"

    def add_arguments(self, parser: CommandParser):
        parser.add_argument("--facility", type=int, required=True, help="事業所 ID")
        parser.add_argument("--year", type=int)
        parser.add_argument("--month", type=int)
        parser.add_argument("--notes", default="")

    def handle(self, *args, **opts):
        # ---- 対象年月の決定 ----
        if opts["year"] and opts["month"]:
            y, m = int(opts["year"]), int(opts["month"])
        elif opts["year"] or opts["month"]:
            raise CommandError("--year と --month は両方指定してください")
        else:
            target = timezone.localdate().replace(day=1) - timedelta(days=1)  # 前月末
            y, m = target.year, target.month
        if not 1 <= m <= 12:
            raise CommandError(f"Invalid month: {m}")
        ym = f"{y:04d}-{m:02d}"

        try:
            run = create_payroll_run(opts["facility"], ym, notes=opts["notes"])
        except (PayrollError, ObjectDoesNotExist, ValueError) as exc:
            raise CommandError(str(exc)) from exc

        summary = run.summary()
        self.stdout.write(self.style.SUCCESS(
            f"Payroll run {run.pk} ({ym}) created: "
            f"{summary['client_count']} clients, ¥{summary['total_net_amount']:,} net, "
            f"{minutes_label(summary['total_minutes'])} worked"
        ))
        for w in run.warnings:
            self.stdout.write(self.style.WARNING(
                f"  ! [{w['code']}] client={w['client_id']} rule={w['rule_id']} {w['message']}"
            ))
