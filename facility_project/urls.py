"""facility_project/urls.py
=================================================
- 管理サイトと工賃計算 API を公開する
- include() を名前空間付きで宣言し衝突を回避
"""
from __future__ import annotations

from django.contrib import admin
from django.urls import include, path
from django.views.generic import RedirectView

urlpatterns: list[path] = [
    # ホーム → 管理サイト
    path("", RedirectView.as_view(url="/admin/", permanent=False), name="home"),

    # 管理サイト
    path("admin/", admin.site.urls),

    # 工賃計算 API
    path("payroll/api/", include(("payroll.urls", "payroll"), namespace="payroll")),
]
