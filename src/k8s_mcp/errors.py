# ABOUTME: Error taxonomy for cluster session and resource operations
# ABOUTME: Converts Kubernetes client exceptions into descriptive domain errors

"""
Error taxonomy shared by every cluster operation.

=============================================================================
WHY A TAXONOMY?
=============================================================================

The tool layer needs to tell the agent WHAT went wrong in one sentence, and
the retry policy needs to know WHETHER trying again could help. Both questions
are answered by the exception class:

    ConfigError             kubeconfig missing, unreadable or malformed
    ClusterConnectionError  cluster unreachable, auth failure, nothing registered
    NotFoundError           cluster/namespace/pod/container/resource absent
    InputValidationError    empty required field, value outside an allowed set,
                            pod phase not eligible for log retrieval
    TransientError          network-level failure (retried, then surfaced)

NotFoundError and InputValidationError are terminal: the retry policy gives up
on them immediately. TransientError is what the policy raises after it has
exhausted its attempts, carrying the last underlying cause in ``details``.

The Kubernetes client raises ``kubernetes.client.ApiException`` for HTTP
errors and urllib3 exceptions for network errors. ``translate_api_error``
is the single place where those are mapped onto this taxonomy.
"""

from __future__ import annotations

import json
from typing import Any

from kubernetes.client.exceptions import ApiException
from urllib3.exceptions import HTTPError as Urllib3HTTPError


class KubernetesMcpError(Exception):
    """
    Base class for every error surfaced to the tool layer.

    Mirrors the shape of an API error: a primary message plus optional
    details. ``str()`` produces a single line suitable for an agent.
    """

    def __init__(self, message: str, details: str | None = None) -> None:
        self.message = message
        self.details = details
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message


class ConfigError(KubernetesMcpError):
    """Connection descriptor is missing, unreadable or malformed."""


class ClusterConnectionError(KubernetesMcpError):
    """Cluster is unreachable, rejected our credentials, or none is configured."""


class NotFoundError(KubernetesMcpError):
    """A cluster, namespace, pod, container or resource does not exist."""


class InputValidationError(KubernetesMcpError):
    """Caller-supplied input is empty, out of range, or not applicable."""


class TransientError(KubernetesMcpError):
    """Network-level failure that survived every retry attempt."""


class DeadlineExceededError(TransientError):
    """The operation did not complete within its deadline."""


# Errors that retrying cannot fix.
TERMINAL_ERRORS: tuple[type[KubernetesMcpError], ...] = (
    ConfigError,
    ClusterConnectionError,
    NotFoundError,
    InputValidationError,
)


def _api_reason(exc: ApiException) -> str:
    """Extract the most useful single-line reason from an ApiException."""
    body: Any = exc.body
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    if isinstance(body, str) and body:
        # The API server answers with a Status object; its "message" is the
        # human-readable part.
        try:
            status = json.loads(body)
        except ValueError:
            return body[:200]
        if isinstance(status, dict) and status.get("message"):
            return str(status["message"])
    return exc.reason or f"HTTP {exc.status}"


def translate_api_error(exc: BaseException, action: str) -> BaseException:
    """
    Map a client-library exception onto the error taxonomy.

    Args:
        exc: The exception raised by the Kubernetes client (or already one of
             ours, which is returned unchanged).
        action: Short description of what was attempted, e.g.
                "get pod 'web' in namespace 'prod'". Embedded in the message.

    Returns:
        An exception instance to raise. Non-Exception BaseExceptions
        (cancellation, interpreter exit) are returned untouched.
    """
    if isinstance(exc, KubernetesMcpError) or not isinstance(exc, Exception):
        return exc

    if isinstance(exc, ApiException):
        reason = _api_reason(exc)
        status = exc.status or 0
        if status == 404:
            return NotFoundError(f"failed to {action}: not found", reason)
        if status in (401, 403):
            return ClusterConnectionError(f"failed to {action}: access denied", reason)
        if status in (400, 409, 422):
            return InputValidationError(f"failed to {action}: rejected by the API server", reason)
        return TransientError(f"failed to {action}: API server error ({status})", reason)

    if isinstance(exc, (Urllib3HTTPError, OSError)):
        return TransientError(f"failed to {action}: network error", str(exc))

    return TransientError(f"failed to {action}", str(exc))
