"""
Structured Logging with Correlation IDs

Context-aware structured logging for sync runs and their stages.
Every record emitted during a run carries the run's correlation ID and the
name of the stage that produced it.

Usage:
    from spechub.core.structured_logging import (
        get_logger,
        with_correlation_id,
        log_stage_start,
        log_stage_end,
    )

    logger = get_logger(__name__)

    with with_correlation_id():
        log_stage_start("UploadSpec", {"spec": "Task API"})
        ...
        log_stage_end("UploadSpec", success=True, spec_id=spec_id)
"""
from __future__ import annotations

import contextvars
import json
import logging
import sys
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional

# Context variable for correlation ID (one per sync run)
correlation_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "correlation_id",
    default=None
)

# Context variable for the orchestrator stage currently running
stage_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "stage",
    default=None
)


# =============================================================================
# Correlation ID Management
# =============================================================================

def generate_correlation_id() -> str:
    """Generate a new correlation ID."""
    return str(uuid.uuid4())


def get_correlation_id() -> Optional[str]:
    """Get current correlation ID from context."""
    return correlation_id_var.get()


def get_stage() -> Optional[str]:
    """Get current stage name from context."""
    return stage_var.get()


@contextmanager
def with_correlation_id(correlation_id: Optional[str] = None):
    """
    Context manager to set correlation ID for a block of code.

    Args:
        correlation_id: Correlation ID to use, or None to generate new one
    """
    if correlation_id is None:
        correlation_id = generate_correlation_id()

    token = correlation_id_var.set(correlation_id)
    try:
        yield correlation_id
    finally:
        correlation_id_var.reset(token)


@contextmanager
def with_stage(stage: str):
    """Context manager to tag records with the running stage."""
    token = stage_var.set(stage)
    try:
        yield stage
    finally:
        stage_var.reset(token)


# =============================================================================
# Formatters
# =============================================================================

def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class StructuredFormatter(logging.Formatter):
    """Log formatter that adds correlation ID and stage fields."""

    def format(self, record: logging.LogRecord) -> str:
        record.correlation_id = get_correlation_id() or "-"
        record.stage = get_stage() or "-"
        record.timestamp = _now()
        return super().format(record)


# Format: [timestamp] [level] [correlation_id] [stage] [logger] message
STRUCTURED_FORMAT = (
    "[%(timestamp)s] [%(levelname)s] "
    "[corr:%(correlation_id)s] [stage:%(stage)s] "
    "[%(name)s] %(message)s"
)

# Attributes present on every LogRecord; anything else came in via extra=
_RESERVED_ATTRS = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    """One JSON object per line, for CI log collectors."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore
        base: Dict[str, Any] = {
            "timestamp": _now(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": get_correlation_id(),
            "stage": get_stage(),
        }
        extra = {
            k: v for k, v in record.__dict__.items()
            if k not in _RESERVED_ATTRS and not k.startswith("_")
            and k not in ("correlation_id", "stage", "timestamp")
        }
        if extra:
            base["fields"] = _filter_sensitive_fields(extra)
        if record.exc_info:
            base["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(base, ensure_ascii=False, default=str)


def configure_logging(level: str = "INFO", fmt: str = "text") -> None:
    """
    Install a single stderr handler on the root logger.

    Only the CLI calls this; library code just asks for loggers.
    """
    root = logging.getLogger()
    root.setLevel(level)
    handler = logging.StreamHandler(sys.stderr)
    if fmt == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(StructuredFormatter(STRUCTURED_FORMAT))
    root.handlers = [handler]
    # httpx logs every request line at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger; formatting is owned by configure_logging."""
    return logging.getLogger(name)


# =============================================================================
# Stage Logging Helpers
# =============================================================================

def log_stage_start(stage: str, params: Optional[Dict[str, Any]] = None):
    """Log stage start with structured fields (sensitive data filtered)."""
    logger = get_logger("spechub.stage")
    safe_params = _filter_sensitive_fields(params or {})

    with with_stage(stage):
        logger.info(
            f"Stage started: {stage}",
            extra={
                "event": "stage_start",
                "stage_name": stage,
                "params": safe_params,
            }
        )


def log_stage_end(
    stage: str,
    success: bool = True,
    error: Optional[str] = None,
    **result_fields
):
    """Log stage end with structured fields."""
    logger = get_logger("spechub.stage")
    safe_results = _filter_sensitive_fields(result_fields)

    with with_stage(stage):
        if success:
            logger.info(
                f"Stage completed: {stage}",
                extra={
                    "event": "stage_end",
                    "stage_name": stage,
                    "success": True,
                    **safe_results
                }
            )
        else:
            logger.error(
                f"Stage failed: {stage}",
                extra={
                    "event": "stage_error",
                    "stage_name": stage,
                    "success": False,
                    "error": error,
                    **safe_results
                }
            )


# =============================================================================
# Security Helpers
# =============================================================================

# Fields that should never be logged
SENSITIVE_FIELD_NAMES = {
    "password", "secret", "token", "api_key", "apikey", "auth",
    "credential", "private_key", "x-api-key",
}


def _filter_sensitive_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    """Redact values whose key looks like a credential, recursing into dicts."""
    filtered = {}
    for key, value in data.items():
        key_lower = str(key).lower()
        if any(sensitive in key_lower for sensitive in SENSITIVE_FIELD_NAMES):
            filtered[key] = "***REDACTED***"
        elif isinstance(value, dict):
            filtered[key] = _filter_sensitive_fields(value)
        else:
            filtered[key] = value
    return filtered
