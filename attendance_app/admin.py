# attendance_app/admin.py
from django.contrib import admin

from .models import AttendanceConfirmation, Client, Facility


@admin.register(Facility)
class FacilityAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "created_at")
    search_fields = ("name",)
    ordering = ("id",)


@admin.register(Client)
class ClientAdmin(admin.ModelAdmin):
    list_display = ("id", "client_number", "full_name", "facility", "status", "start_date", "end_date")
    list_filter = ("facility", "status")
    search_fields = ("last_name", "first_name", "client_number")
    list_select_related = ("facility",)
    ordering = ("id",)

    def full_name(self, obj):
        return obj.full_name
    full_name.short_description = "氏名"
    full_name.admin_order_field = "last_name"


@admin.register(AttendanceConfirmation)
class AttendanceConfirmationAdmin(admin.ModelAdmin):
    list_display = ("id", "client", "date", "status", "check_in_time", "check_out_time", "confirmed_at")
    list_filter = ("status", "client__facility")
    search_fields = ("client__last_name", "client__first_name")
    autocomplete_fields = ("client",)
    date_hierarchy = "date"
    ordering = ("-date",)
