"""テスト用のデータ作成ヘルパー"""
import datetime as _dt

from attendance_app.models import AttendanceConfirmation, Client, Facility
from payroll.models import WageRule, WorkLog

UTC = _dt.timezone.utc


def make_facility(name="さくら作業所"):
    return Facility.objects.create(name=name)


def make_client(facility, last_name="山田", first_name="太郎", **kwargs):
    return Client.objects.create(facility=facility, last_name=last_name, first_name=first_name, **kwargs)


def confirm(client, day, status="present", minutes=480, start_hour=9):
    """day の start_hour 時から minutes 分の確定勤怠を作る（minutes=None で時刻なし）"""
    check_in = check_out = None
    if minutes is not None:
        check_in = _dt.datetime(day.year, day.month, day.day, start_hour, 0, tzinfo=UTC)
        check_out = check_in + _dt.timedelta(minutes=minutes)
    return AttendanceConfirmation.objects.create(
        client=client, date=day, status=status, check_in_time=check_in, check_out_time=check_out
    )


def make_rule(facility, client=None, **kwargs):
    values = {
        "name": "標準",
        "calculation_type": "hourly",
        "hourly_rate": 1000,
        "valid_from": _dt.date(2024, 4, 1),
    }
    values.update(kwargs)
    return WageRule.objects.create(facility=facility, client=client, **values)


def log_work(client, day, work_type, quantity, unit="個"):
    return WorkLog.objects.create(client=client, date=day, work_type=work_type, quantity=quantity, unit=unit)
