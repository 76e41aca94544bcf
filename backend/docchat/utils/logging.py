"""Structured logging for external model calls and logging setup."""

import logging
from typing import Any

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once at startup."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )


class StructuredCallLogger:
    """Structured logger for external model calls."""

    def log_call(
        self,
        service: str,
        outcome: str,
        latency_ms: float,
        *,
        items: int | None = None,
        error_reason: str | None = None,
    ) -> None:
        """Log an external call with structured data."""
        log_data: dict[str, Any] = {
            "service": service,
            "outcome": outcome,
            "latency_ms": round(latency_ms, 2),
        }

        if items is not None:
            log_data["items"] = items
        if error_reason:
            log_data["error_reason"] = error_reason

        log_msg = f"External call: {service} - {outcome}"

        if outcome == "success":
            logger.info(log_msg, extra={"structured": log_data})
        else:
            logger.warning(log_msg, extra={"structured": log_data})
