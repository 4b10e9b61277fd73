from django.db import models

# payroll/choices.py


class CalculationType(models.TextChoices):
    HOURLY = "hourly", "時給"
    DAILY = "daily", "日給"
    PIECE_RATE = "piece_rate", "出来高"
    MIXED = "mixed", "混合"


class DeductionKind(models.TextChoices):
    FIXED = "fixed", "定額"
    PERCENTAGE = "percentage", "定率"


class RunStatus(models.TextChoices):
    CALCULATING = "calculating", "計算中"
    DRAFT = "draft", "下書き"
    CONFIRMED = "confirmed", "確定"
    PAID = "paid", "支払済み"


# 許可する状態遷移（後戻り・飛び越しなし）
RUN_TRANSITIONS: dict[str, str] = {
    RunStatus.CALCULATING: RunStatus.DRAFT,
    RunStatus.DRAFT: RunStatus.CONFIRMED,
    RunStatus.CONFIRMED: RunStatus.PAID,
}

# 明細がロックされる状態
LOCKED_STATUSES = frozenset({RunStatus.CONFIRMED, RunStatus.PAID})
