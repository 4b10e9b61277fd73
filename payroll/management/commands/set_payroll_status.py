from django.core.management.base import BaseCommand, CommandError, CommandParser

from payroll.exceptions import PayrollError
from payroll.services import confirm_payroll_run, mark_payroll_run_paid

ACTIONS = {
    "confirm": confirm_payroll_run,
    "paid": mark_payroll_run_paid,
}


class Command(BaseCommand):
    help = "給与計算 run を確定（confirm）または支払済み（paid）にする"

    def add_arguments(self, parser: CommandParser):
        parser.add_argument("run_id", type=int)
        parser.add_argument("action", choices=sorted(ACTIONS))

    def handle(self, *args, **opts):
        try:
            run = ACTIONS[opts["action"]](opts["run_id"])
        except PayrollError as exc:
            raise CommandError(str(exc)) from exc
        self.stdout.write(self.style.SUCCESS(f"Payroll run {run.pk} is now {run.status}"))
