# ABOUTME: Bounded, point-in-time pod log retrieval with container resolution
# ABOUTME: Reads at most 100 KiB per request and always releases the stream

"""
Log stream reader.

Steps for one request:

1. fetch the pod (namespace check first, as every namespaced read does)
2. refuse pods that are neither Running nor Succeeded unless ``previous``
3. pick the container: the first declared one when none was named
4. open the log stream (follow is always off) with retries
5. read up to ``MAX_LOG_BYTES``; an empty stream is a NotFoundError
6. compose a header naming container, pod, namespace and active filters

Reading exactly ``MAX_LOG_BYTES`` means the log was cut; the result then
carries a truncation notice after the payload.
The decoded payload never encodes to more bytes than were read.
"""

from __future__ import annotations

import codecs
import math
import re
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING

import structlog

from k8s_mcp.cluster.retry import SINGLE_ATTEMPT, run_remote
from k8s_mcp.errors import InputValidationError, NotFoundError

if TYPE_CHECKING:
    from k8s_mcp.cluster.clients import LogStream
    from k8s_mcp.cluster.resources import ResourceTranslator

logger = structlog.get_logger(__name__)

MAX_LOG_BYTES = 100 * 1024
READ_CHUNK_BYTES = 16 * 1024

LOG_PHASES = frozenset({"Running", "Succeeded"})

TRUNCATION_NOTICE = (
    "[Output truncated due to size limits. "
    "Use the 'tail' or 'since' parameters to view specific sections of logs.]"
)

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_DURATION_UNITS = {"h": 3600.0, "m": 60.0, "s": 1.0, "ms": 0.001}


def parse_duration(text: str) -> timedelta:
    """
    Parse durations such as ``"30s"``, ``"5m"`` or ``"1h30m"``.

    >>> parse_duration("1h30m")
    datetime.timedelta(seconds=5400)
    """
    value = text.strip()
    if not value:
        raise InputValidationError("duration cannot be empty")

    pos = 0
    seconds = 0.0
    for match in _DURATION_PART.finditer(value):
        if match.start() != pos:
            break
        seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos != len(value) or pos == 0:
        raise InputValidationError(f"invalid duration '{text}'", "expected e.g. 30s, 5m or 1h30m")
    return timedelta(seconds=seconds)


def format_duration(value: timedelta) -> str:
    """``timedelta(minutes=90)`` -> ``"1h30m0s"``."""
    total = int(value.total_seconds())
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    if hours:
        return f"{hours}h{minutes}m{seconds}s"
    if minutes:
        return f"{minutes}m{seconds}s"
    return f"{seconds}s"


@dataclass(frozen=True)
class LogRequest:
    pod_name: str
    namespace: str = ""
    container_name: str = ""
    tail_lines: int | None = None
    previous: bool = False
    since: timedelta | None = None


@dataclass(frozen=True)
class LogResult:
    header: str
    payload: str
    container: str
    truncated: bool

    @property
    def text(self) -> str:
        out = f"{self.header}:\n\n{self.payload}"
        if self.truncated:
            out += f"\n\n{TRUNCATION_NOTICE}"
        return out


def read_capped(stream: LogStream, limit: int = MAX_LOG_BYTES) -> bytes:
    """Read from ``stream`` until EOF or ``limit`` bytes, whichever comes first."""
    chunks: list[bytes] = []
    remaining = limit
    while remaining > 0:
        chunk = stream.read(min(READ_CHUNK_BYTES, remaining))
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def decode_capped(data: bytes, final: bool = True) -> str:
    """
    Decode log bytes as UTF-8 without growing past ``len(data)`` once re-encoded.

    With ``final=False`` an incomplete multi-byte sequence at the end (a cut
    made by the byte ceiling) is dropped instead of becoming U+FFFD. Invalid
    bytes are replaced, and when the replacements would make the text larger
    than the input it is cut back to the input size on a character boundary.
    """
    text = codecs.getincrementaldecoder("utf-8")(errors="replace").decode(data, final=final)
    encoded = text.encode("utf-8")
    if len(encoded) <= len(data):
        return text
    return encoded[: len(data)].decode("utf-8", errors="ignore")


def since_to_seconds(value: timedelta) -> int:
    """Whole seconds for the API's ``sinceSeconds``; sub-second windows round up to 1."""
    return max(1, math.ceil(value.total_seconds()))


def _select_container(pod: dict, pod_name: str, requested: str) -> str:
    containers = [c.get("name", "") for c in (pod.get("spec") or {}).get("containers") or []]
    if not containers:
        raise NotFoundError(f"no containers found in pod '{pod_name}'")
    if not requested:
        return containers[0]
    if requested not in containers:
        raise NotFoundError(
            f"container '{requested}' not found in pod '{pod_name}'. "
            f"Available containers: {', '.join(containers)}"
        )
    return requested


def _header(container: str, namespace: str, request: LogRequest) -> str:
    options = []
    if request.previous:
        options.append("previous=true")
    if request.tail_lines and request.tail_lines > 0:
        options.append(f"tail={request.tail_lines}")
    if request.since is not None:
        options.append(f"since={format_duration(timedelta(seconds=since_to_seconds(request.since)))}")

    header = f"Logs from container '{container}' in pod '{namespace}/{request.pod_name}'"
    if options:
        header += f" ({', '.join(options)})"
    return header


class LogStreamReader:
    """Reads pod logs through the translator's current session and policy."""

    def __init__(self, translator: ResourceTranslator, max_bytes: int = MAX_LOG_BYTES) -> None:
        self._translator = translator
        self._max_bytes = max_bytes

    async def read(self, request: LogRequest) -> LogResult:
        """
        Fetch logs for one container.

        Raises:
            InputValidationError: No pod name, or the pod phase does not allow
                log retrieval without ``previous``.
            NotFoundError: Namespace, pod or container missing; no logs.
            TransientError: Retries exhausted opening or reading the stream.
        """
        if not request.pod_name:
            raise InputValidationError("pod name must be specified")

        translator = self._translator
        deadline = translator.deadlines.logs
        session = translator.registry.current()
        namespace = translator.namespace_or_current(request.namespace)

        pod = await translator.fetch_pod(session, request.pod_name, namespace, deadline)

        phase = (pod.get("status") or {}).get("phase") or "Unknown"
        if phase not in LOG_PHASES and not request.previous:
            raise InputValidationError(
                f"pod '{request.pod_name}' is in '{phase}' state. "
                "Logs may not be available. Use previous=true for crashed containers"
            )

        container = _select_container(pod, request.pod_name, request.container_name)
        since_seconds = since_to_seconds(request.since) if request.since is not None else None
        tail_lines = request.tail_lines if request.tail_lines and request.tail_lines > 0 else None

        target = f"container '{container}' in pod '{namespace}/{request.pod_name}'"
        stream = await translator.call(
            f"stream logs for {target}",
            session.typed.open_pod_logs,
            request.pod_name,
            namespace,
            container=container,
            previous=request.previous,
            tail_lines=tail_lines,
            since_seconds=since_seconds,
            deadline=deadline,
        )
        try:
            # A partially consumed stream cannot be replayed, so reads are not retried.
            data = await run_remote(
                f"read logs for {target}",
                read_capped,
                stream,
                self._max_bytes,
                policy=SINGLE_ATTEMPT,
                deadline=deadline,
            )
        finally:
            stream.close()

        if not data:
            kind = "previous logs" if request.previous else "logs"
            raise NotFoundError(
                f"no {kind} found for container '{container}' in pod '{request.pod_name}'"
            )

        truncated = len(data) >= self._max_bytes
        logger.debug("Logs read", target=target, bytes=len(data), truncated=truncated)
        return LogResult(
            header=_header(container, namespace, request),
            payload=decode_capped(data, final=not truncated),
            container=container,
            truncated=truncated,
        )
