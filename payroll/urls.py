from django.urls import path

from payroll import views

app_name = "payroll"


urlpatterns = [
    # 工賃ルール
    path("facilities/<int:facility_id>/rules/", views.facility_rules, name="rule_list"),
    path("rules/<int:rule_id>/", views.rule_detail, name="rule_detail"),

    # 作業記録
    path("facilities/<int:facility_id>/work-logs/", views.facility_work_logs, name="work_log_list"),
    path("facilities/<int:facility_id>/work-logs/bulk/", views.facility_work_logs_bulk,
         name="work_log_bulk"),
    path("work-logs/<int:log_id>/", views.work_log_detail, name="work_log_detail"),

    # 給与計算
    path("facilities/<int:facility_id>/runs/", views.facility_runs, name="run_list"),
    path("runs/<int:run_id>/", views.run_detail, name="run_detail"),
    path("runs/<int:run_id>/confirm/", views.run_confirm, name="run_confirm"),
    path("runs/<int:run_id>/paid/", views.run_paid, name="run_paid"),
    path("runs/<int:run_id>/recalculate/", views.run_recalculate, name="run_recalculate"),
]
