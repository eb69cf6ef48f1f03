# ABOUTME: Structured logging with correlation IDs for the Kubernetes MCP server
# ABOUTME: Configures structlog and records an audit trail of tool invocations

"""
Structured logging with correlation IDs and audit trails.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

1. STRUCTURED LOGGING: structlog key/value events, rendered for a console or
   as JSON lines for a log aggregator.

2. CORRELATION IDs: every tool call gets a short random id, stored in a
   ``ContextVar`` and stamped on each log line the call produces. Remote calls
   run in worker threads via ``asyncio.to_thread``, which copies the current
   context, so lines logged from those threads carry the same id.

3. AUDIT LOGGING: one entry per tool invocation (what, against which target,
   with what result), written to a JSON-lines file or through structlog.

=============================================================================
WHERE DO LOGS GO?
=============================================================================

The MCP stdio transport owns stdout. All log output goes to stderr.

Filter one request's lines:

    jq 'select(.correlation_id == "a1b2c3d4")'
"""

from __future__ import annotations

import json
import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from collections.abc import MutableMapping
    from pathlib import Path

correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")


def get_correlation_id() -> str:
    """Current request's correlation id, created on first use."""
    cid = correlation_id.get()
    if not cid:
        cid = str(uuid.uuid4())[:8]
        correlation_id.set(cid)
    return cid


def set_correlation_id(cid: str) -> None:
    correlation_id.set(cid)


def new_correlation_id() -> str:
    """Start a fresh correlation id for a new tool invocation."""
    cid = str(uuid.uuid4())[:8]
    correlation_id.set(cid)
    return cid


def add_correlation_id(
    logger: structlog.types.WrappedLogger,  # noqa: ARG001 - Required by structlog Processor API
    method_name: str,  # noqa: ARG001 - Required by structlog Processor API
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """structlog processor adding ``correlation_id`` to every event."""
    event_dict["correlation_id"] = get_correlation_id()
    return event_dict


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
) -> None:
    """
    Configure structlog for the process.

    Args:
        level: Minimum level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_output: JSON lines when true, coloured console output otherwise.
    """
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        add_correlation_id,
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


class AuditLogger:
    """
    Audit trail of tool invocations.

    Each entry records the action (tool name), the target (cluster,
    namespace/name or resource address), and the result. With a ``log_path``
    entries are appended to that file as JSON lines; otherwise they go through
    structlog under the ``audit`` logger.

    Example entry:
        {"timestamp": "...", "correlation_id": "a1b2c3d4",
         "action": "delete_pod", "target": "prod/default/web-0",
         "result": "success", "details": {"force": true}}
    """

    def __init__(self, log_path: Path | None = None) -> None:
        self._log_path = log_path
        self._logger = structlog.get_logger("audit")

    def log(
        self,
        action: str,
        target: str,
        result: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        entry: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "correlation_id": get_correlation_id(),
            "action": action,
            "target": target,
            "result": result,
        }
        if details:
            entry["details"] = details

        if self._log_path:
            with self._log_path.open("a") as f:
                f.write(json.dumps(entry, default=str) + "\n")
        else:
            self._logger.info(
                "audit",
                action=action,
                target=target,
                result=result,
                details=details,
            )

    def log_read(self, action: str, target: str) -> None:
        self.log(action, target, "success")

    def log_write(
        self,
        action: str,
        target: str,
        result: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.log(action, target, result, details)

    def log_error(
        self,
        action: str,
        target: str,
        error: str,
    ) -> None:
        self.log(action, target, "error", {"error": error})
