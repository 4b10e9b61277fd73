# payroll/models.py  ──────────────────────────────────────────────────────────
# 工賃ルール・作業記録・給与計算（PayrollRun / PayrollLine）
# 事業所と利用者、確定済み勤怠は attendance_app のモデルを参照する。
from __future__ import annotations

from datetime import date

from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models, transaction
from django.db.models import Count, Q, Sum
from django.utils import timezone

from attendance_app.models import Client, Facility

from payroll.choices import LOCKED_STATUSES, RUN_TRANSITIONS, CalculationType, RunStatus
from payroll.exceptions import InvalidStateTransitionError, MalformedRuleDataError, RecordLockedError
from payroll.rule_data import parse_deductions, parse_piece_rates

# ─────────────────────────
# 1. 工賃ルール
# ─────────────────────────
class WageRuleQuerySet(models.QuerySet):
    def for_facility(self, facility_id: int):
        return self.filter(facility_id=facility_id)

    def valid_on(self, target: date):
        return self.filter(valid_from__lte=target).filter(
            Q(valid_until__isnull=True) | Q(valid_until__gte=target)
        )


class WageRule(models.Model):
    facility = models.ForeignKey(Facility, on_delete=models.CASCADE, related_name="wage_rules")
    # null = 事業所デフォルト
    client = models.ForeignKey(
        Client, on_delete=models.CASCADE, related_name="wage_rules", null=True, blank=True
    )
    name = models.CharField("ルール名", max_length=100)
    calculation_type = models.CharField(
        "計算方式", max_length=12, choices=CalculationType.choices
    )
    hourly_rate = models.PositiveIntegerField(
        "時給(¥)", null=True, blank=True, validators=[MinValueValidator(1)]
    )
    daily_rate = models.PositiveIntegerField(
        "日給(¥)", null=True, blank=True, validators=[MinValueValidator(1)]
    )
    piece_rates = models.JSONField("出来高単価", default=list, blank=True)
    deductions = models.JSONField("控除", default=list, blank=True)
    valid_from = models.DateField("有効開始日")
    valid_until = models.DateField("有効終了日", null=True, blank=True)
    is_default = models.BooleanField("デフォルト", default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = WageRuleQuerySet.as_manager()

    class Meta:
        ordering = ("-is_default", "-valid_from", "id")
        indexes = [models.Index(fields=["facility", "client", "valid_from"], name="wagerule_scope_valid_idx")]

    def __str__(self) -> str:  # pragma: no cover
        scope = self.client.full_name if self.client_id else "事業所デフォルト"
        return f"{self.name} ({scope})"

    # ------------------------------------------------------------------
    # Lock
    # ------------------------------------------------------------------
    @property
    def is_locked(self) -> bool:
        """確定済み / 支払済みの run から参照されていれば True"""
        if self.pk is None:
            return False
        return PayrollLine.objects.filter(
            wage_rule_id=self.pk, run__status__in=LOCKED_STATUSES
        ).exists()

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------
    def clean(self) -> None:  # noqa: C901
        errors: dict[str, str] = {}

        if self.is_locked:
            raise ValidationError("確定済みの給与計算で使用されたルールは変更できません。")

        pieces = ()
        try:
            pieces = parse_piece_rates(self.piece_rates)
        except MalformedRuleDataError as exc:
            errors["piece_rates"] = f"出来高単価の形式が正しくありません: {exc.detail}"
        try:
            parse_deductions(self.deductions)
        except MalformedRuleDataError as exc:
            errors["deductions"] = f"控除の形式が正しくありません: {exc.detail}"

        ctype = self.calculation_type
        if ctype == CalculationType.HOURLY and not self.hourly_rate:
            errors["hourly_rate"] = "時給を入力してください。"
        if ctype == CalculationType.DAILY and not self.daily_rate:
            errors["daily_rate"] = "日給を入力してください。"
        if ctype == CalculationType.MIXED and not (self.hourly_rate or self.daily_rate):
            errors["hourly_rate"] = "混合方式では時給または日給を入力してください。"
        if ctype in (CalculationType.PIECE_RATE, CalculationType.MIXED) \
                and "piece_rates" not in errors and not pieces:
            errors["piece_rates"] = "出来高単価を 1 件以上入力してください。"

        if self.valid_from and self.valid_until and self.valid_until < self.valid_from:
            errors["valid_until"] = "有効終了日は有効開始日以降にしてください。"

        if self.client_id and self.facility_id and self.client.facility_id != self.facility_id:
            errors["client"] = "他の事業所の利用者は指定できません。"

        if errors:
            raise ValidationError(errors)

    def save(self, *args, **kwargs):
        if self.is_locked:
            raise RecordLockedError("WageRule", self.pk)
        with transaction.atomic():
            if self.is_default:
                # 同じスコープの他のデフォルトを解除
                (WageRule.objects
                 .filter(facility_id=self.facility_id, client_id=self.client_id, is_default=True)
                 .exclude(pk=self.pk)
                 .update(is_default=False))
            super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        if self.is_locked:
            raise RecordLockedError("WageRule", self.pk)
        return super().delete(*args, **kwargs)


# ─────────────────────────
# 2. 作業記録（出来高）
# ─────────────────────────
class WorkLogQuerySet(models.QuerySet):
    def in_period(self, start: date, end: date):
        return self.filter(date__gte=start, date__lte=end)


class WorkLog(models.Model):
    client = models.ForeignKey(Client, on_delete=models.CASCADE, related_name="work_logs")
    date = models.DateField("作業日")
    work_type = models.CharField("作業種別", max_length=100)
    quantity = models.DecimalField(
        "数量", max_digits=12, decimal_places=3, null=True, blank=True,
        validators=[MinValueValidator(0)],
    )
    unit = models.CharField("単位", max_length=20, blank=True)
    notes = models.TextField("備考", blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = WorkLogQuerySet.as_manager()

    class Meta:
        ordering = ("date", "client_id", "id")
        indexes = [models.Index(fields=["client", "date"], name="worklog_client_date_idx")]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.date:%Y-%m-%d} {self.client.full_name} {self.work_type} {self.quantity or '-'}"

    def _covering_locked_lines(self, client_id: int, on: date):
        return PayrollLine.objects.filter(
            client_id=client_id,
            run__status__in=LOCKED_STATUSES,
            run__period_start__lte=on,
            run__period_end__gte=on,
        )

    @property
    def is_locked(self) -> bool:
        if self.pk is None:
            return False
        return self._covering_locked_lines(self.client_id, self.date).exists()

    def save(self, *args, **kwargs):
        if self.pk is not None:
            original = WorkLog.objects.filter(pk=self.pk).values("client_id", "date").first()
            if original and self._covering_locked_lines(original["client_id"], original["date"]).exists():
                raise RecordLockedError("WorkLog", self.pk)
        if self._covering_locked_lines(self.client_id, self.date).exists():
            raise RecordLockedError("WorkLog", self.pk)
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        if self.is_locked:
            raise RecordLockedError("WorkLog", self.pk)
        return super().delete(*args, **kwargs)


# ─────────────────────────
# 3. 給与計算（月次）
# ─────────────────────────
class PayrollRunQuerySet(models.QuerySet):
    def for_facility(self, facility_id: int):
        return self.filter(facility_id=facility_id)

    def active(self):
        """支払済み以外（= 同一期間に 1 件のみ許可される run）"""
        return self.exclude(status=RunStatus.PAID)


class PayrollRun(models.Model):
    facility = models.ForeignKey(Facility, on_delete=models.CASCADE, related_name="payroll_runs")
    period_start = models.DateField("対象期間（開始）")
    period_end = models.DateField("対象期間（終了）")
    status = models.CharField(
        "状態", max_length=12, choices=RunStatus.choices, default=RunStatus.CALCULATING
    )
    notes = models.TextField("備考", blank=True)
    # 除外された利用者・データ品質の警告
    warnings = models.JSONField("警告", default=list, blank=True)

    confirmed_at = models.DateTimeField("確定日時", null=True, blank=True)
    paid_at = models.DateTimeField("支払日時", null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = PayrollRunQuerySet.as_manager()

    class Meta:
        ordering = ("-period_start", "-id")
        constraints = [
            models.UniqueConstraint(
                fields=["facility", "period_start"],
                condition=~Q(status=RunStatus.PAID),
                name="uq_active_payroll_run_per_period",
            ),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.period_start:%Y-%m} {self.facility.name} [{self.get_status_display()}]"

    @property
    def is_locked(self) -> bool:
        return self.status in LOCKED_STATUSES

    @property
    def period_label(self) -> str:
        return f"{self.period_start:%Y-%m}"

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------
    def transition_to(self, target: str) -> None:
        """1 段階だけ前進させる。後戻り・飛び越しは InvalidStateTransitionError。"""
        if RUN_TRANSITIONS.get(self.status) != target:
            raise InvalidStateTransitionError(self.pk, self.status, target)
        self.status = target
        now = timezone.now()
        if target == RunStatus.CONFIRMED:
            self.confirmed_at = now
        elif target == RunStatus.PAID:
            self.paid_at = now

    # ------------------------------------------------------------------
    # Summary（保存せず毎回明細から集計する）
    # ------------------------------------------------------------------
    def summary(self) -> dict[str, int]:
        totals = self.lines.aggregate(
            client_count=Count("id"),
            total_base_amount=Sum("base_amount"),
            total_piece_amount=Sum("piece_amount"),
            total_deductions=Sum("deductions_total"),
            total_net_amount=Sum("net_amount"),
            total_work_days=Sum("work_days"),
            total_minutes=Sum("total_minutes"),
        )
        summary = {k: int(v or 0) for k, v in totals.items()}
        summary["skipped_count"] = len(self.skipped_client_ids)
        return summary

    @property
    def skipped_client_ids(self) -> list[int]:
        """エラーで除外された利用者（警告のうち明細を持たないもの）"""
        ids = {w.get("client_id") for w in (self.warnings or []) if w.get("excluded")}
        ids.discard(None)
        return sorted(ids)


class PayrollLine(models.Model):
    run = models.ForeignKey(PayrollRun, on_delete=models.CASCADE, related_name="lines")
    client = models.ForeignKey(Client, on_delete=models.PROTECT, related_name="payroll_lines")
    wage_rule = models.ForeignKey(
        WageRule, on_delete=models.SET_NULL, related_name="payroll_lines", null=True, blank=True
    )

    work_days = models.PositiveIntegerField("出勤日数", default=0)
    total_minutes = models.PositiveIntegerField("総作業分数", default=0)
    base_amount = models.PositiveIntegerField("基本工賃", default=0)
    piece_amount = models.PositiveIntegerField("出来高工賃", default=0)
    deductions_total = models.PositiveIntegerField("控除合計", default=0)
    net_amount = models.PositiveIntegerField("支給額", default=0)
    breakdown = models.JSONField("内訳", default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("run_id", "client__last_name", "client__first_name", "client_id")
        unique_together = ("run", "client")

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.run.period_label} {self.client.full_name} ¥{self.net_amount:,}"

    def clean(self) -> None:
        expected = max(0, self.base_amount + self.piece_amount - self.deductions_total)
        if self.net_amount != expected:
            raise ValidationError({"net_amount": f"支給額は {expected} 円になるはずです。"})

    def save(self, *args, **kwargs):
        if PayrollRun.objects.filter(pk=self.run_id, status__in=LOCKED_STATUSES).exists():
            raise RecordLockedError("PayrollLine", self.pk)
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        if PayrollRun.objects.filter(pk=self.run_id, status__in=LOCKED_STATUSES).exists():
            raise RecordLockedError("PayrollLine", self.pk)
        return super().delete(*args, **kwargs)
