from __future__ import annotations

from datetime import date, datetime

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

# ---------------------------------------------------------------------------
# Facility
# ---------------------------------------------------------------------------

class Facility(models.Model):
    """事業所マスタ。"""

    name: str = models.CharField("事業所名", max_length=100)
    created_at: datetime = models.DateTimeField(auto_now_add=True)
    updated_at: datetime = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Facility"
        verbose_name_plural = "Facilities"
        ordering = ("id",)

    def __str__(self) -> str:  # pragma: no cover
        return self.name


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class ClientQuerySet(models.QuerySet):
    def active(self) -> "ClientQuerySet":
        return self.filter(status=Client.Status.ACTIVE)


class Client(models.Model):
    """利用者マスタ。"""

    class Status(models.TextChoices):
        ACTIVE = "active", _("利用中")
        SUSPENDED = "suspended", _("休止中")
        ENDED = "ended", _("利用終了")

    facility: Facility = models.ForeignKey(Facility, on_delete=models.CASCADE, related_name="clients")
    client_number: str = models.CharField("利用者番号", max_length=20, blank=True)
    last_name: str = models.CharField("姓", max_length=50)
    first_name: str = models.CharField("名", max_length=50)
    status: str = models.CharField(
        "状態", max_length=10, choices=Status.choices, default=Status.ACTIVE
    )
    start_date: date | None = models.DateField("利用開始日", null=True, blank=True)
    end_date: date | None = models.DateField("利用終了日", null=True, blank=True)

    created_at: datetime = models.DateTimeField(auto_now_add=True)
    updated_at: datetime = models.DateTimeField(auto_now=True)

    objects = ClientQuerySet.as_manager()

    class Meta:
        ordering = ("last_name", "first_name", "id")

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.pk:03d} | {self.full_name}"

    @property
    def full_name(self) -> str:
        return f"{self.last_name} {self.first_name}"

    def end_service(self, on: date | None = None) -> None:
        """利用終了処理: 状態を ended にして終了日を記録"""
        if self.status != self.Status.ENDED:
            self.status = self.Status.ENDED
            self.end_date = on or timezone.localdate()
            self.save(update_fields=["status", "end_date", "updated_at"])


# ---------------------------------------------------------------------------
# AttendanceConfirmation
# ---------------------------------------------------------------------------

class AttendanceConfirmationQuerySet(models.QuerySet):
    """期間・状態フィルターのショートカットを提供するカスタム QuerySet"""

    def in_period(self, start: date, end: date) -> "AttendanceConfirmationQuerySet":
        return self.filter(date__gte=start, date__lte=end)

    def work_days(self) -> "AttendanceConfirmationQuerySet":
        return self.filter(status__in=AttendanceConfirmation.WORK_DAY_STATUSES)


class AttendanceConfirmation(models.Model):
    """確定済みの勤怠（1 利用者 1 日 1 件）"""

    class Status(models.TextChoices):
        PRESENT = "present", _("出席")
        ABSENT = "absent", _("欠席")
        LATE = "late", _("遅刻")
        EARLY_LEAVE = "early_leave", _("早退")
        HALF_DAY = "half_day", _("半日")
        NO_SHOW = "no_show", _("無断欠席")

    # 出勤日数に数える状態（遅刻・早退・半日も 1 日として数える）
    WORK_DAY_STATUSES = frozenset({
        Status.PRESENT, Status.LATE, Status.EARLY_LEAVE, Status.HALF_DAY,
    })

    client: Client = models.ForeignKey(Client, on_delete=models.CASCADE, related_name="confirmations")
    date: date = models.DateField("日付")
    status: str = models.CharField("状態", max_length=12, choices=Status.choices)
    check_in_time: datetime | None = models.DateTimeField("出勤時刻", null=True, blank=True)
    check_out_time: datetime | None = models.DateTimeField("退勤時刻", null=True, blank=True)
    notes: str = models.TextField("備考", blank=True)
    confirmed_at: datetime = models.DateTimeField("確定日時", default=timezone.now)

    objects = AttendanceConfirmationQuerySet.as_manager()

    class Meta:
        ordering = ("date", "client_id")
        constraints = [
            models.UniqueConstraint(fields=["client", "date"], name="uq_confirmation_client_date"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.client.full_name} {self.date:%Y-%m-%d} {self.get_status_display()}"

    @property
    def counts_as_work_day(self) -> bool:
        return self.status in self.WORK_DAY_STATUSES
