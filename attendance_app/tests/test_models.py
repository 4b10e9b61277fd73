import datetime as _dt

from django.db import IntegrityError, transaction
from django.test import TestCase

from attendance_app.models import AttendanceConfirmation, Client, Facility


class ClientModelTest(TestCase):
    def setUp(self):
        self.facility = Facility.objects.create(name="さくら作業所")

    def test_active_queryset(self):
        active = Client.objects.create(facility=self.facility, last_name="山田", first_name="太郎")
        Client.objects.create(facility=self.facility, last_name="鈴木", first_name="次郎",
                              status=Client.Status.SUSPENDED)
        self.assertEqual(list(Client.objects.active()), [active])
        self.assertEqual(active.full_name, "山田 太郎")

    def test_end_service(self):
        client = Client.objects.create(facility=self.facility, last_name="山田", first_name="太郎")
        client.end_service(_dt.date(2024, 6, 30))
        client.refresh_from_db()
        self.assertEqual(client.status, Client.Status.ENDED)
        self.assertEqual(client.end_date, _dt.date(2024, 6, 30))

        # 二回目は終了日を書き換えない
        client.end_service(_dt.date(2024, 7, 31))
        client.refresh_from_db()
        self.assertEqual(client.end_date, _dt.date(2024, 6, 30))


class AttendanceConfirmationTest(TestCase):
    def setUp(self):
        facility = Facility.objects.create(name="さくら作業所")
        self.client_obj = Client.objects.create(facility=facility, last_name="山田", first_name="太郎")

    def confirm(self, day, status):
        return AttendanceConfirmation.objects.create(client=self.client_obj, date=day, status=status)

    def test_work_day_statuses(self):
        S = AttendanceConfirmation.Status
        expected = {
            S.PRESENT: True, S.LATE: True, S.EARLY_LEAVE: True, S.HALF_DAY: True,
            S.ABSENT: False, S.NO_SHOW: False,
        }
        for status, counted in expected.items():
            with self.subTest(status=status):
                self.assertEqual(AttendanceConfirmation(status=status).counts_as_work_day, counted)

    def test_one_confirmation_per_day(self):
        self.confirm(_dt.date(2024, 6, 3), "present")
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                self.confirm(_dt.date(2024, 6, 3), "absent")

    def test_period_and_work_day_filters(self):
        self.confirm(_dt.date(2024, 5, 31), "present")
        self.confirm(_dt.date(2024, 6, 3), "present")
        self.confirm(_dt.date(2024, 6, 4), "absent")
        self.confirm(_dt.date(2024, 6, 5), "late")
        self.confirm(_dt.date(2024, 7, 1), "present")

        june = AttendanceConfirmation.objects.in_period(_dt.date(2024, 6, 1), _dt.date(2024, 6, 30))
        self.assertEqual(june.count(), 3)
        self.assertEqual(
            [c.date.day for c in june.work_days()],
            [3, 5],
        )
