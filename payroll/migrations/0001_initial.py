import django.core.validators
import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("attendance_app", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="WageRule",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=100, verbose_name="ルール名")),
                ("calculation_type", models.CharField(
                    choices=[("hourly", "時給"), ("daily", "日給"), ("piece_rate", "出来高"), ("mixed", "混合")],
                    max_length=12, verbose_name="計算方式",
                )),
                ("hourly_rate", models.PositiveIntegerField(
                    blank=True, null=True,
                    validators=[django.core.validators.MinValueValidator(1)], verbose_name="時給(¥)",
                )),
                ("daily_rate", models.PositiveIntegerField(
                    blank=True, null=True,
                    validators=[django.core.validators.MinValueValidator(1)], verbose_name="日給(¥)",
                )),
                ("piece_rates", models.JSONField(blank=True, default=list, verbose_name="出来高単価")),
                ("deductions", models.JSONField(blank=True, default=list, verbose_name="控除")),
                ("valid_from", models.DateField(verbose_name="有効開始日")),
                ("valid_until", models.DateField(blank=True, null=True, verbose_name="有効終了日")),
                ("is_default", models.BooleanField(default=False, verbose_name="デフォルト")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("client", models.ForeignKey(
                    blank=True, null=True, on_delete=django.db.models.deletion.CASCADE,
                    related_name="wage_rules", to="attendance_app.client",
                )),
                ("facility", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name="wage_rules",
                    to="attendance_app.facility",
                )),
            ],
            options={
                "ordering": ("-is_default", "-valid_from", "id"),
                "indexes": [models.Index(fields=["facility", "client", "valid_from"], name="wagerule_scope_valid_idx")],
            },
        ),
        migrations.CreateModel(
            name="WorkLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("date", models.DateField(verbose_name="作業日")),
                ("work_type", models.CharField(max_length=100, verbose_name="作業種別")),
                ("quantity", models.DecimalField(
                    blank=True, decimal_places=3, max_digits=12, null=True,
                    validators=[django.core.validators.MinValueValidator(0)], verbose_name="数量",
                )),
                ("unit", models.CharField(blank=True, max_length=20, verbose_name="単位")),
                ("notes", models.TextField(blank=True, verbose_name="備考")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("client", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name="work_logs",
                    to="attendance_app.client",
                )),
            ],
            options={
                "ordering": ("date", "client_id", "id"),
                "indexes": [models.Index(fields=["client", "date"], name="worklog_client_date_idx")],
            },
        ),
        migrations.CreateModel(
            name="PayrollRun",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("period_start", models.DateField(verbose_name="対象期間（開始）")),
                ("period_end", models.DateField(verbose_name="対象期間（終了）")),
                ("status", models.CharField(
                    choices=[("calculating", "計算中"), ("draft", "下書き"), ("confirmed", "確定"), ("paid", "支払済み")],
                    default="calculating", max_length=12, verbose_name="状態",
                )),
                ("notes", models.TextField(blank=True, verbose_name="備考")),
                ("warnings", models.JSONField(blank=True, default=list, verbose_name="警告")),
                ("confirmed_at", models.DateTimeField(blank=True, null=True, verbose_name="確定日時")),
                ("paid_at", models.DateTimeField(blank=True, null=True, verbose_name="支払日時")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("facility", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name="payroll_runs",
                    to="attendance_app.facility",
                )),
            ],
            options={
                "ordering": ("-period_start", "-id"),
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("status", "paid"), _negated=True),
                        fields=("facility", "period_start"),
                        name="uq_active_payroll_run_per_period",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="PayrollLine",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("work_days", models.PositiveIntegerField(default=0, verbose_name="出勤日数")),
                ("total_minutes", models.PositiveIntegerField(default=0, verbose_name="総作業分数")),
                ("base_amount", models.PositiveIntegerField(default=0, verbose_name="基本工賃")),
                ("piece_amount", models.PositiveIntegerField(default=0, verbose_name="出来高工賃")),
                ("deductions_total", models.PositiveIntegerField(default=0, verbose_name="控除合計")),
                ("net_amount", models.PositiveIntegerField(default=0, verbose_name="支給額")),
                ("breakdown", models.JSONField(blank=True, default=dict, verbose_name="内訳")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("client", models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT, related_name="payroll_lines",
                    to="attendance_app.client",
                )),
                ("run", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name="lines",
                    to="payroll.payrollrun",
                )),
                ("wage_rule", models.ForeignKey(
                    blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                    related_name="payroll_lines", to="payroll.wagerule",
                )),
            ],
            options={
                "ordering": ("run_id", "client__last_name", "client__first_name", "client_id"),
                "unique_together": {("run", "client")},
            },
        ),
    ]
