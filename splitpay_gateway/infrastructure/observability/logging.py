"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

from pythonjsonlogger import jsonlogger

from splitpay_gateway.config import settings
from splitpay_gateway.domain.models import ChargeResult, RenewalBatchResult


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_charge(request_id: str, result: ChargeResult, total_amount_cents: int, duration_ms: float) -> None:
    """Log structured charge-and-split outcome for reconciliation"""
    logging.info(
        "Charge completed",
        extra={
            "request_id": request_id,
            "step": "charge_complete",
            "payment_intent_id": result.payment_intent_id,
            "transfer_group": result.transfer_group,
            "amount_cents": total_amount_cents,
            "transfers_created": len(result.transfers_created),
            "transfer_errors": len(result.transfer_errors),
            "platform_retained_cents": result.platform_retained_amount_cents,
            "duration_ms": duration_ms,
        },
    )


def log_renewal_batch(result: RenewalBatchResult, duration_ms: float) -> None:
    """One summary line per scheduled renewal run"""
    logging.info(
        result.message,
        extra={
            "step": "renewal_batch_complete",
            "processed_count": result.processed_count,
            "errors_count": result.errors_count,
            "skipped_count": result.skipped_count,
            "duration_ms": duration_ms,
        },
    )
