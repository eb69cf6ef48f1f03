# ABOUTME: Bounded retry and deadline policy wrapping every remote cluster call
# ABOUTME: Uses tenacity for the retry loop and asyncio for deadlines and cancellation

"""
Retry/timeout policy for remote cluster calls.

=============================================================================
THE CONTRACT
=============================================================================

Every call to the cluster API goes through ``run_remote``:

    pod = await run_remote(
        "get pod 'web' in namespace 'prod'",
        typed.get_pod, "web", "prod", timeout=20.0,
        policy=policy, deadline=20.0,
    )

which gives the call:

1. A DEADLINE covering all attempts and backoff sleeps together
   (20s for reads and lists, 30s for mutations and log streaming).
2. A BOUNDED RETRY LOOP: the call is re-invoked while the policy's
   ``is_retryable`` predicate accepts the last error and attempts remain.
3. CANCELLATION: if the awaiting task is cancelled, the cancellation
   propagates immediately, between attempts or during backoff, and is
   never retried or converted into a retry-exhausted error.

The Kubernetes client is blocking, so each attempt runs in a worker thread
(``asyncio.to_thread``). The thread itself cannot be interrupted; callers also
pass the deadline down as the client's ``_request_timeout`` so an abandoned
thread gives up on its socket on its own.

=============================================================================
DEFAULTS
=============================================================================

The default policy mirrors the Kubernetes client-go ``retry.DefaultRetry``:
5 attempts, 10ms apart, factor 1.0, 10% jitter. It retries everything except
errors that textually indicate "not found" and our terminal error kinds.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from k8s_mcp.errors import (
    TERMINAL_ERRORS,
    DeadlineExceededError,
    KubernetesMcpError,
    TransientError,
    translate_api_error,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from tenacity.wait import wait_base

logger = structlog.get_logger(__name__)

T = TypeVar("T")

READ_TIMEOUT = 20.0
MUTATION_TIMEOUT = 30.0
LOG_TIMEOUT = 30.0


def default_is_retryable(exc: BaseException) -> bool:
    """Retry anything except cancellation, terminal kinds, and "not found" errors."""
    if not isinstance(exc, Exception):
        return False
    if isinstance(exc, TERMINAL_ERRORS):
        return False
    return "not found" not in str(exc).lower()


@dataclass(frozen=True)
class RetryPolicy:
    """
    How many times to try, how long to wait in between, and what is worth retrying.

    The wait before attempt ``n + 1`` is
    ``backoff * factor ** (n - 1)`` (capped at ``max_backoff``) plus up to
    ``jitter`` seconds of random noise.
    """

    max_attempts: int = 5
    backoff: float = 0.01
    factor: float = 1.0
    jitter: float = 0.001
    max_backoff: float = 5.0
    is_retryable: Callable[[BaseException], bool] = field(default=default_is_retryable)

    def wait_strategy(self) -> wait_base:
        return wait_exponential(
            multiplier=self.backoff, exp_base=self.factor, max=self.max_backoff
        ) + wait_random(0, self.jitter)

    def should_retry(self, exc: BaseException) -> bool:
        # Cancellation is never handed to the predicate.
        return isinstance(exc, Exception) and self.is_retryable(exc)


DEFAULT_RETRY_POLICY = RetryPolicy()

# Used for liveness probes: fail fast, report the first error.
SINGLE_ATTEMPT = RetryPolicy(max_attempts=1)


@dataclass(frozen=True)
class Deadlines:
    """Per-category deadlines in seconds."""

    read: float = READ_TIMEOUT
    mutation: float = MUTATION_TIMEOUT
    logs: float = LOG_TIMEOUT


def _log_retry(action: str) -> Callable[[RetryCallState], None]:
    def before_sleep(state: RetryCallState) -> None:
        error = state.outcome.exception() if state.outcome else None
        logger.warning(
            "Retrying remote call",
            action=action,
            attempt=state.attempt_number,
            error=str(error),
        )

    return before_sleep


async def _retry_loop(
    action: str,
    fn: Callable[..., T],
    args: tuple[Any, ...],
    kwargs: dict[str, Any],
    policy: RetryPolicy,
) -> T:
    retrying = AsyncRetrying(
        stop=stop_after_attempt(policy.max_attempts),
        wait=policy.wait_strategy(),
        retry=retry_if_exception(policy.should_retry),
        before_sleep=_log_retry(action),
        reraise=True,
    )
    try:
        async for attempt in retrying:
            with attempt:
                return await _attempt(action, fn, args, kwargs)
    except Exception as e:
        if not policy.should_retry(e):
            raise
        # Still retryable, so we ran out of attempts.
        attempts = retrying.statistics.get("attempt_number", 1)
        cause = e.details or e.message if isinstance(e, KubernetesMcpError) else str(e)
        raise TransientError(f"failed to {action} after {attempts} attempt(s)", cause) from e
    # AsyncRetrying either returns from the body or raises.
    raise AssertionError("unreachable")  # pragma: no cover


async def _attempt(
    action: str,
    fn: Callable[..., T],
    args: tuple[Any, ...],
    kwargs: dict[str, Any],
) -> T:
    """One call in a worker thread, with client errors mapped onto the taxonomy."""
    try:
        return await asyncio.to_thread(fn, *args, **kwargs)
    except Exception as e:
        translated = translate_api_error(e, action)
        if translated is e:
            raise
        raise translated from e


async def run_remote(
    action: str,
    fn: Callable[..., T],
    *args: Any,
    policy: RetryPolicy = DEFAULT_RETRY_POLICY,
    deadline: float = READ_TIMEOUT,
    **kwargs: Any,
) -> T:
    """
    Run a blocking remote call under a deadline and a bounded retry loop.

    Args:
        action: What is being attempted, used in log lines and error messages
                (e.g. "list pods in namespace 'prod'").
        fn: Blocking callable performing one attempt.
        *args: Positional arguments for ``fn``.
        policy: Retry policy; defaults to ``DEFAULT_RETRY_POLICY``.
        deadline: Seconds allowed for all attempts together.
        **kwargs: Keyword arguments for ``fn``.

    Returns:
        Whatever ``fn`` returns.

    Raises:
        DeadlineExceededError: The deadline elapsed.
        TransientError: Every attempt failed with a retryable error.
        NotFoundError, InputValidationError, ClusterConnectionError: Terminal
            errors, raised on first occurrence.
        asyncio.CancelledError: The caller cancelled the operation.
    """
    logger.debug("Remote call", action=action, deadline=deadline)
    timeout_cm = asyncio.timeout(deadline)
    try:
        async with timeout_cm:
            return await _retry_loop(action, fn, args, kwargs, policy)
    except TimeoutError as e:
        if timeout_cm.expired():
            raise DeadlineExceededError(
                f"failed to {action}: deadline of {deadline:g}s exceeded"
            ) from e
        raise
