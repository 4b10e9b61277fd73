from django import forms

from attendance_app.models import Client

from .models import WageRule, WorkLog
from .utils import parse_ym


# ─────────────────────────────────────────────────────────────
# WageRuleForm
# 工賃ルールの作成・更新（JSON API と管理画面で共用）。
# 事業所はビュー側で決めるのでフォームには含めない。
# ─────────────────────────────────────────────────────────────
class WageRuleForm(forms.ModelForm):
    class Meta:
        model = WageRule
        fields = [
            "client",
            "name",
            "calculation_type",
            "hourly_rate",
            "daily_rate",
            "piece_rates",
            "deductions",
            "valid_from",
            "valid_until",
            "is_default",
        ]
        labels = {
            "client": "対象利用者（空欄は事業所デフォルト）",
        }

    def __init__(self, *args, facility=None, **kwargs):
        super().__init__(*args, **kwargs)
        if facility is not None:
            self.instance.facility = facility
            self.fields["client"].queryset = Client.objects.filter(facility=facility)

    # JSONField は空リストを None にしてしまうので戻す
    def clean_piece_rates(self):
        return self.cleaned_data.get("piece_rates") or []

    def clean_deductions(self):
        return self.cleaned_data.get("deductions") or []


class WorkLogForm(forms.ModelForm):
    """作業記録 1 件"""

    class Meta:
        model = WorkLog
        fields = ["client", "date", "work_type", "quantity", "unit", "notes"]

    def __init__(self, *args, facility=None, **kwargs):
        super().__init__(*args, **kwargs)
        if facility is not None:
            self.fields["client"].queryset = Client.objects.filter(facility=facility)


class PayrollRunCreateForm(forms.Form):
    """給与計算の実行（対象月 YYYY-MM / YYYYMM）"""

    month = forms.CharField(label="対象月", max_length=7)
    notes = forms.CharField(label="備考", required=False, widget=forms.Textarea)

    def clean_month(self):
        value = self.cleaned_data["month"]
        try:
            year, month = parse_ym(value)
        except ValueError:
            raise forms.ValidationError("対象月は YYYY-MM 形式で入力してください。")
        return f"{year:04d}-{month:02d}"
