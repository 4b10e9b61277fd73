from django.contrib import admin, messages

from .exceptions import PayrollError
from .models import PayrollLine, PayrollRun, WageRule, WorkLog
from .services import confirm_payroll_run, mark_payroll_run_paid
from .utils import minutes_label


@admin.register(WageRule)
class WageRuleAdmin(admin.ModelAdmin):
    list_display = (
        "name",
        "facility",
        "client",
        "calculation_type",
        "hourly_rate",
        "daily_rate",
        "valid_from",
        "valid_until",
        "is_default",
    )
    list_filter = ("facility", "calculation_type", "is_default")
    search_fields = ("name", "client__last_name", "client__first_name")
    autocomplete_fields = ("client",)
    list_select_related = ("facility", "client")

    def get_readonly_fields(self, request, obj=None):
        # 確定済みの run で使われたルールは閲覧のみ
        if obj is not None and obj.is_locked:
            return [f.name for f in self.model._meta.fields]
        return super().get_readonly_fields(request, obj)

    def has_delete_permission(self, request, obj=None):
        if obj is not None and obj.is_locked:
            return False
        return super().has_delete_permission(request, obj)


@admin.register(WorkLog)
class WorkLogAdmin(admin.ModelAdmin):
    list_display = ("date", "client", "work_type", "quantity", "unit")
    list_filter = ("client__facility", "work_type")
    search_fields = ("work_type", "client__last_name", "client__first_name")
    autocomplete_fields = ("client",)
    date_hierarchy = "date"
    list_select_related = ("client",)


# ── 明細は run から作られるので閲覧のみ ──────────────────
class PayrollLineInline(admin.TabularInline):
    model = PayrollLine
    extra = 0
    can_delete = False
    fields = (
        "client",
        "wage_rule",
        "work_days",
        "work_time",
        "base_amount",
        "piece_amount",
        "deductions_total",
        "net_amount",
    )
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False

    def work_time(self, obj):
        return minutes_label(obj.total_minutes)
    work_time.short_description = "作業時間"


@admin.register(PayrollRun)
class PayrollRunAdmin(admin.ModelAdmin):
    list_display = ("period_label", "facility", "status", "line_count", "net_total", "confirmed_at", "paid_at")
    list_filter = ("facility", "status")
    readonly_fields = ("status", "warnings", "confirmed_at", "paid_at", "created_at", "updated_at")
    inlines = [PayrollLineInline]
    actions = ["confirm_runs", "mark_runs_paid"]

    # run の作成は services 経由（管理コマンド / API）
    def has_add_permission(self, request):
        return False

    def period_label(self, obj):
        return obj.period_label
    period_label.short_description = "対象月"
    period_label.admin_order_field = "period_start"

    def line_count(self, obj):
        return obj.summary()["client_count"]
    line_count.short_description = "人数"

    def net_total(self, obj):
        return f"¥{obj.summary()['total_net_amount']:,}"
    net_total.short_description = "支給総額"

    def _apply(self, request, queryset, func, label):
        done = 0
        for run in queryset:
            try:
                func(run.pk)
            except PayrollError as exc:
                self.message_user(request, f"{run}: {exc}", level=messages.ERROR)
            else:
                done += 1
        if done:
            self.message_user(request, f"{done} 件を{label}にしました。", level=messages.SUCCESS)

    @admin.action(description="選択した給与計算を確定する")
    def confirm_runs(self, request, queryset):
        self._apply(request, queryset, confirm_payroll_run, "確定済み")

    @admin.action(description="選択した給与計算を支払済みにする")
    def mark_runs_paid(self, request, queryset):
        self._apply(request, queryset, mark_payroll_run_paid, "支払済み")
