import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Facility",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=100, verbose_name="事業所名")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Facility",
                "verbose_name_plural": "Facilities",
                "ordering": ("id",),
            },
        ),
        migrations.CreateModel(
            name="Client",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("client_number", models.CharField(blank=True, max_length=20, verbose_name="利用者番号")),
                ("last_name", models.CharField(max_length=50, verbose_name="姓")),
                ("first_name", models.CharField(max_length=50, verbose_name="名")),
                ("status", models.CharField(
                    choices=[("active", "利用中"), ("suspended", "休止中"), ("ended", "利用終了")],
                    default="active", max_length=10, verbose_name="状態",
                )),
                ("start_date", models.DateField(blank=True, null=True, verbose_name="利用開始日")),
                ("end_date", models.DateField(blank=True, null=True, verbose_name="利用終了日")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("facility", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name="clients",
                    to="attendance_app.facility",
                )),
            ],
            options={
                "ordering": ("last_name", "first_name", "id"),
            },
        ),
        migrations.CreateModel(
            name="AttendanceConfirmation",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("date", models.DateField(verbose_name="日付")),
                ("status", models.CharField(
                    choices=[
                        ("present", "出席"), ("absent", "欠席"), ("late", "遅刻"),
                        ("early_leave", "早退"), ("half_day", "半日"), ("no_show", "無断欠席"),
                    ],
                    max_length=12, verbose_name="状態",
                )),
                ("check_in_time", models.DateTimeField(blank=True, null=True, verbose_name="出勤時刻")),
                ("check_out_time", models.DateTimeField(blank=True, null=True, verbose_name="退勤時刻")),
                ("notes", models.TextField(blank=True, verbose_name="備考")),
                ("confirmed_at", models.DateTimeField(default=django.utils.timezone.now, verbose_name="確定日時")),
                ("client", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name="confirmations",
                    to="attendance_app.client",
                )),
            ],
            options={
                "ordering": ("date", "client_id"),
                "constraints": [
                    models.UniqueConstraint(fields=("client", "date"), name="uq_confirmation_client_date"),
                ],
            },
        ),
    ]
