# ============================================================
# payroll/views.py
# 工賃ルール・作業記録・給与計算の JSON API（スタッフ専用）
# ============================================================
from __future__ import annotations

import json
import logging
from functools import wraps
from typing import Any

from django.contrib.admin.views.decorators import staff_member_required
from django.core.exceptions import ObjectDoesNotExist, ValidationError
from django.db.models import Q
from django.forms.models import model_to_dict
from django.http import HttpRequest, HttpResponse, JsonResponse
from django.views.decorators.http import require_http_methods

from attendance_app.models import Facility
from payroll.exceptions import (
    DuplicateActiveRunError,
    InvalidStateTransitionError,
    MalformedRuleDataError,
    PayrollRunNotFoundError,
    PersistenceError,
    RecordLockedError,
)
from payroll.forms import PayrollRunCreateForm, WageRuleForm, WorkLogForm
from payroll.models import PayrollLine, PayrollRun, WageRule, WorkLog
from payroll import services
from payroll.utils import parse_iso_date

logger = logging.getLogger(__name__)


# --------------------------- common helpers ---------------------------

def _fail(msg: str, status: int, code: str | None = None) -> JsonResponse:
    body: dict[str, Any] = {"ok": False, "msg": msg}
    if code:
        body["code"] = code
    return JsonResponse(body, status=status)


def _form_errors(form) -> JsonResponse:
    return JsonResponse(
        {"ok": False, "msg": "入力内容に誤りがあります。", "errors": form.errors.get_json_data()},
        status=400,
    )


def json_errors(view):
    """
    ドメイン例外を JSON エラーに変換する。
      - 見つからない            → 404
      - 重複 run / 不正な遷移 / ロック → 409
      - 保存失敗                → 503
      - 入力不正                → 400
    """
    @wraps(view)
    def wrapper(request: HttpRequest, *args, **kwargs) -> HttpResponse:
        try:
            return view(request, *args, **kwargs)
        except PayrollRunNotFoundError as exc:
            return _fail("給与計算が見つかりません", 404, exc.code)
        except ObjectDoesNotExist as exc:
            return _fail(str(exc) or "not found", 404)
        except (DuplicateActiveRunError, InvalidStateTransitionError, RecordLockedError) as exc:
            return _fail(str(exc), 409, exc.code)
        except PersistenceError as exc:
            logger.error("Payroll persistence failed: %s", exc)
            return _fail("保存に失敗しました。時間をおいて再実行してください。", 503, exc.code)
        except MalformedRuleDataError as exc:
            return _fail(str(exc), 400, exc.code)
        except (ValueError, ValidationError) as exc:
            return _fail(str(exc), 400)
    return wrapper


def _payload(request: HttpRequest) -> dict[str, Any]:
    """JSON ボディ（またはフォーム POST）を dict で返す。"""
    if request.content_type == "application/json":
        try:
            data = json.loads(request.body or b"{}")
        except json.JSONDecodeError as exc:
            raise ValueError("invalid JSON body") from exc
        if not isinstance(data, dict):
            raise ValueError("JSON body must be an object")
        return data
    return request.POST.dict()


def _facility(facility_id: int) -> Facility:
    try:
        return Facility.objects.get(pk=facility_id)
    except Facility.DoesNotExist:
        raise Facility.DoesNotExist("事業所が見つかりません") from None


def _int_param(value: str | None, name: str) -> int | None:
    if value in (None, ""):
        return None
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer") from exc


# --------------------------- serializers ---------------------------

def _client_dict(client) -> dict[str, Any]:
    return {
        "id": client.pk,
        "client_number": client.client_number,
        "last_name": client.last_name,
        "first_name": client.first_name,
    }


def _rule_dict(rule: WageRule) -> dict[str, Any]:
    return {
        "id": rule.pk,
        "facility_id": rule.facility_id,
        "client_id": rule.client_id,
        "name": rule.name,
        "calculation_type": rule.calculation_type,
        "hourly_rate": rule.hourly_rate,
        "daily_rate": rule.daily_rate,
        "piece_rates": rule.piece_rates,
        "deductions": rule.deductions,
        "valid_from": rule.valid_from.isoformat(),
        "valid_until": rule.valid_until.isoformat() if rule.valid_until else None,
        "is_default": rule.is_default,
    }


def _work_log_dict(log: WorkLog) -> dict[str, Any]:
    return {
        "id": log.pk,
        "client": _client_dict(log.client),
        "date": log.date.isoformat(),
        "work_type": log.work_type,
        "quantity": str(log.quantity) if log.quantity is not None else None,
        "unit": log.unit,
        "notes": log.notes,
    }


def _line_dict(line: PayrollLine) -> dict[str, Any]:
    return {
        "id": line.pk,
        "client": _client_dict(line.client),
        "wage_rule_id": line.wage_rule_id,
        "work_days": line.work_days,
        "total_minutes": line.total_minutes,
        "base_amount": line.base_amount,
        "piece_amount": line.piece_amount,
        "deductions_total": line.deductions_total,
        "net_amount": line.net_amount,
        "breakdown": line.breakdown,
    }


def _run_dict(run: PayrollRun, *, summary: dict | None = None, with_lines: bool = False) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": run.pk,
        "facility_id": run.facility_id,
        "month": run.period_label,
        "period_start": run.period_start.isoformat(),
        "period_end": run.period_end.isoformat(),
        "status": run.status,
        "notes": run.notes,
        "warnings": run.warnings,
        "confirmed_at": run.confirmed_at.isoformat() if run.confirmed_at else None,
        "paid_at": run.paid_at.isoformat() if run.paid_at else None,
        "created_at": run.created_at.isoformat() if run.created_at else None,
        "summary": summary if summary is not None else run.summary(),
    }
    if with_lines:
        data["lines"] = [_line_dict(line) for line in run.lines.select_related("client")]
    return data


# =============================================================================
# 工賃ルール
# =============================================================================

@staff_member_required
@require_http_methods(["GET", "POST"])
@json_errors
def facility_rules(request: HttpRequest, facility_id: int) -> HttpResponse:
    """
    GET  : ルール一覧（?client_id= で個人ルール + 事業所デフォルト / ?type=）
    POST : ルール作成
    """
    facility = _facility(facility_id)

    if request.method == "GET":
        qs = WageRule.objects.for_facility(facility.pk)
        client_id = _int_param(request.GET.get("client_id"), "client_id")
        if client_id is not None:
            qs = qs.filter(Q(client_id=client_id) | Q(client__isnull=True))
        if request.GET.get("type"):
            qs = qs.filter(calculation_type=request.GET["type"])
        return JsonResponse({"ok": True, "rules": [_rule_dict(r) for r in qs]})

    data = _payload(request)
    form = WageRuleForm(
        data={**data, "client": data.get("client_id", data.get("client"))},
        facility=facility,
    )
    if not form.is_valid():
        return _form_errors(form)
    rule = form.save()
    logger.info("Wage rule %s created for facility %s", rule.pk, facility.pk)
    return JsonResponse({"ok": True, "rule": _rule_dict(rule)}, status=201)


def _merged(instance, data: dict[str, Any], fields) -> dict[str, Any]:
    """既存の値に、送られてきた項目だけを上書きしたフォームデータ"""
    merged = model_to_dict(instance, fields=fields)
    merged.update({k: v for k, v in data.items() if k in fields})
    return merged


@staff_member_required
@require_http_methods(["GET", "PUT", "PATCH", "DELETE"])
@json_errors
def rule_detail(request: HttpRequest, rule_id: int) -> HttpResponse:
    """
    GET          : ルール 1 件
    PUT / PATCH  : 送られた項目だけ更新（対象利用者は変更不可）
    DELETE       : 削除
    確定済み・支払済みの run で使われたルールは 409
    """
    try:
        rule = WageRule.objects.select_related("facility").get(pk=rule_id)
    except WageRule.DoesNotExist:
        raise WageRule.DoesNotExist("工賃ルールが見つかりません") from None

    if request.method == "GET":
        return JsonResponse({"ok": True, "rule": _rule_dict(rule)})

    if rule.is_locked:
        raise RecordLockedError("WageRule", rule.pk)

    if request.method == "DELETE":
        rule.delete()
        logger.info("Wage rule %s deleted", rule_id)
        return JsonResponse({"ok": True})

    data = _merged(rule, _payload(request), WageRuleForm.Meta.fields)
    data["client"] = rule.client_id
    form = WageRuleForm(data=data, instance=rule, facility=rule.facility)
    if not form.is_valid():
        return _form_errors(form)
    rule = form.save()
    logger.info("Wage rule %s updated", rule.pk)
    return JsonResponse({"ok": True, "rule": _rule_dict(rule)})


# =============================================================================
# 作業記録
# =============================================================================

def _work_log_form(facility: Facility, entry: dict[str, Any], date=None) -> WorkLogForm:
    data = {
        "client": entry.get("client_id", entry.get("client")),
        "date": date or entry.get("date"),
        "work_type": entry.get("work_type"),
        "quantity": entry.get("quantity"),
        "unit": entry.get("unit") or "",
        "notes": entry.get("notes") or "",
    }
    return WorkLogForm(data=data, facility=facility)


@staff_member_required
@require_http_methods(["GET", "POST"])
@json_errors
def facility_work_logs(request: HttpRequest, facility_id: int) -> HttpResponse:
    """
    GET  : 作業記録一覧（?client_id= / ?date= / ?start=&end=）
    POST : 作業記録 1 件作成
    """
    facility = _facility(facility_id)

    if request.method == "GET":
        qs = (WorkLog.objects
              .filter(client__facility=facility)
              .select_related("client")
              .order_by("-date", "client_id", "id"))
        client_id = _int_param(request.GET.get("client_id"), "client_id")
        if client_id is not None:
            qs = qs.filter(client_id=client_id)
        day = parse_iso_date(request.GET.get("date"))
        if day:
            qs = qs.filter(date=day)
        else:
            start = parse_iso_date(request.GET.get("start"))
            end = parse_iso_date(request.GET.get("end"))
            if start:
                qs = qs.filter(date__gte=start)
            if end:
                qs = qs.filter(date__lte=end)
        return JsonResponse({"ok": True, "work_logs": [_work_log_dict(w) for w in qs]})

    form = _work_log_form(facility, _payload(request))
    if not form.is_valid():
        return _form_errors(form)
    log = form.save()
    return JsonResponse({"ok": True, "work_log": _work_log_dict(log)}, status=201)


@staff_member_required
@require_http_methods(["POST"])
@json_errors
def facility_work_logs_bulk(request: HttpRequest, facility_id: int) -> HttpResponse:
    """
    同じ日付の作業記録をまとめて作成する。
      - POST {"date": "YYYY-MM-DD", "entries": [{client_id, work_type, quantity, unit, notes}, ...]}
      - 不正な行・ロック中の行はスキップ（件数を返す）
    """
    facility = _facility(facility_id)
    data = _payload(request)
    date = data.get("date")
    entries = data.get("entries")
    if not date or not isinstance(entries, list) or not entries:
        return _fail("日付と作業記録データが必要です", 400)

    created: list[WorkLog] = []
    skipped = 0
    for entry in entries:
        if not isinstance(entry, dict):
            skipped += 1
            continue
        form = _work_log_form(facility, entry, date=date)
        if not form.is_valid():
            skipped += 1
            continue
        try:
            created.append(form.save())
        except RecordLockedError:
            skipped += 1

    return JsonResponse(
        {
            "ok": True,
            "work_logs": [_work_log_dict(w) for w in created],
            "count": len(created),
            "skipped": skipped,
        },
        status=201,
    )


@staff_member_required
@require_http_methods(["GET", "PUT", "PATCH", "DELETE"])
@json_errors
def work_log_detail(request: HttpRequest, log_id: int) -> HttpResponse:
    """
    GET          : 作業記録 1 件
    PUT / PATCH  : 作業種別・数量・単位・備考を更新（利用者と日付は変更不可）
    DELETE       : 削除
    確定済みの明細に含まれる作業記録は 409
    """
    try:
        log = WorkLog.objects.select_related("client__facility").get(pk=log_id)
    except WorkLog.DoesNotExist:
        raise WorkLog.DoesNotExist("作業記録が見つかりません") from None

    if request.method == "GET":
        return JsonResponse({"ok": True, "work_log": _work_log_dict(log)})

    if log.is_locked:
        raise RecordLockedError("WorkLog", log.pk)

    if request.method == "DELETE":
        log.delete()
        return JsonResponse({"ok": True})

    data = _merged(log, _payload(request), WorkLogForm.Meta.fields)
    data["client"], data["date"] = log.client_id, log.date
    form = WorkLogForm(data=data, instance=log, facility=log.client.facility)
    if not form.is_valid():
        return _form_errors(form)
    log = form.save()
    return JsonResponse({"ok": True, "work_log": _work_log_dict(log)})


# =============================================================================
# 給与計算
# =============================================================================

@staff_member_required
@require_http_methods(["GET", "POST"])
@json_errors
def facility_runs(request: HttpRequest, facility_id: int) -> HttpResponse:
    """
    GET  : run 一覧（?status= / ?month=YYYY-MM）
    POST : run 作成 {"month": "YYYY-MM", "notes": ""}
    """
    facility = _facility(facility_id)

    if request.method == "GET":
        runs = services.list_payroll_runs(
            facility.pk,
            status=request.GET.get("status") or None,
            month=request.GET.get("month") or None,
        )
        return JsonResponse({"ok": True, "runs": [_run_dict(r) for r in runs]})

    form = PayrollRunCreateForm(data=_payload(request))
    if not form.is_valid():
        return _form_errors(form)
    run = services.create_payroll_run(
        facility.pk, form.cleaned_data["month"], notes=form.cleaned_data["notes"]
    )
    return JsonResponse({"ok": True, "run": _run_dict(run, with_lines=True)}, status=201)


@staff_member_required
@require_http_methods(["GET"])
@json_errors
def run_detail(request: HttpRequest, run_id: int) -> HttpResponse:
    run, summary = services.get_payroll_run(run_id)
    return JsonResponse({"ok": True, "run": _run_dict(run, summary=summary, with_lines=True)})


@staff_member_required
@require_http_methods(["POST"])
@json_errors
def run_confirm(request: HttpRequest, run_id: int) -> HttpResponse:
    run = services.confirm_payroll_run(run_id)
    return JsonResponse({"ok": True, "run": _run_dict(run)})


@staff_member_required
@require_http_methods(["POST"])
@json_errors
def run_paid(request: HttpRequest, run_id: int) -> HttpResponse:
    run = services.mark_payroll_run_paid(run_id)
    return JsonResponse({"ok": True, "run": _run_dict(run)})


@staff_member_required
@require_http_methods(["POST"])
@json_errors
def run_recalculate(request: HttpRequest, run_id: int) -> HttpResponse:
    run = services.recalculate_payroll_run(run_id)
    return JsonResponse({"ok": True, "run": _run_dict(run, with_lines=True)})
