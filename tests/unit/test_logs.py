# ABOUTME: Unit tests for pod log retrieval
# ABOUTME: Tests container selection, phase checks, the 100 KiB cap and stream release

from datetime import timedelta

import pytest

from k8s_mcp.cluster.logs import (
    MAX_LOG_BYTES,
    TRUNCATION_NOTICE,
    LogRequest,
    LogStreamReader,
    decode_capped,
    format_duration,
    parse_duration,
    read_capped,
    since_to_seconds,
)
from k8s_mcp.cluster.resources import ResourceTranslator
from k8s_mcp.errors import InputValidationError, NotFoundError
from tests.fakes import FakeLogStream, FakeTypedOps, make_pod


@pytest.fixture
def reader(translator: ResourceTranslator) -> LogStreamReader:
    return LogStreamReader(translator)


@pytest.mark.unit
class TestDurations:
    """Tests for duration parsing and formatting."""

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("30s", timedelta(seconds=30)),
            ("5m", timedelta(minutes=5)),
            ("1h30m", timedelta(hours=1, minutes=30)),
            ("1.5h", timedelta(minutes=90)),
            ("500ms", timedelta(milliseconds=500)),
        ],
    )
    def test_parse(self, text: str, expected: timedelta):
        assert parse_duration(text) == expected

    @pytest.mark.parametrize("text", ["", "abc", "5", "5x", "m5", "1h 30m"])
    def test_parse_invalid(self, text: str):
        with pytest.raises(InputValidationError):
            parse_duration(text)

    def test_format(self):
        assert format_duration(timedelta(minutes=90)) == "1h30m0s"
        assert format_duration(timedelta(minutes=5)) == "5m0s"
        assert format_duration(timedelta(seconds=30)) == "30s"

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (timedelta(milliseconds=500), 1),
            (timedelta(milliseconds=1), 1),
            (timedelta(seconds=1.2), 2),
            (timedelta(minutes=5), 300),
        ],
    )
    def test_since_seconds_never_zero(self, value: timedelta, expected: int):
        assert since_to_seconds(value) == expected


@pytest.mark.unit
class TestReadCapped:
    """Tests for the bounded stream reader."""

    def test_reads_to_eof(self):
        assert read_capped(FakeLogStream(b"hello\n")) == b"hello\n"

    def test_stops_at_limit(self):
        stream = FakeLogStream(b"x" * 50)
        assert read_capped(stream, limit=20) == b"x" * 20
        assert stream.bytes_read == 20


@pytest.mark.unit
class TestDecodeCapped:
    """Tests for byte-bounded UTF-8 decoding."""

    def test_plain_text_unchanged(self):
        assert decode_capped("héllo\n".encode()) == "héllo\n"

    def test_cut_sequence_dropped_when_not_final(self):
        data = "aé".encode()[:-1]
        assert decode_capped(data, final=False) == "a"

    def test_cut_sequence_trimmed_when_final(self):
        data = "aé".encode()[:-1]
        assert decode_capped(data) == "a"

    def test_invalid_bytes_do_not_grow_payload(self):
        data = b"\xff" * 1000

        text = decode_capped(data)

        assert len(text.encode()) <= len(data)
        assert set(text) == {"\ufffd"}


@pytest.mark.unit
class TestLogStreamReader:
    """Tests for LogStreamReader.read."""

    async def test_defaults_to_first_container(self, reader: LogStreamReader, typed_ops: FakeTypedOps):
        typed_ops.add_pod(make_pod("web", "prod", containers=("app", "sidecar")))
        typed_ops.logs[("prod", "web", "app")] = b"line 1\nline 2\n"

        result = await reader.read(LogRequest(pod_name="web", namespace="prod"))

        assert result.container == "app"
        assert result.truncated is False
        assert result.text == "Logs from container 'app' in pod 'prod/web':\n\nline 1\nline 2\n"

    async def test_named_container(self, reader: LogStreamReader, typed_ops: FakeTypedOps):
        typed_ops.add_pod(make_pod("web", "prod", containers=("app", "sidecar")))
        typed_ops.logs[("prod", "web", "sidecar")] = b"proxy up\n"

        result = await reader.read(LogRequest(pod_name="web", namespace="prod", container_name="sidecar"))

        assert result.payload == "proxy up\n"

    async def test_uses_current_namespace(self, reader: LogStreamReader, typed_ops: FakeTypedOps):
        typed_ops.add_pod(make_pod("web", "default"))
        typed_ops.logs[("default", "web", "app")] = b"ok\n"

        result = await reader.read(LogRequest(pod_name="web"))

        assert "'default/web'" in result.header

    async def test_missing_container_lists_available(self, reader: LogStreamReader, typed_ops: FakeTypedOps):
        typed_ops.add_pod(make_pod("web", "prod", containers=("app", "sidecar")))

        with pytest.raises(NotFoundError) as exc_info:
            await reader.read(LogRequest(pod_name="web", namespace="prod", container_name="db"))

        assert str(exc_info.value) == (
            "container 'db' not found in pod 'web'. Available containers: app, sidecar"
        )
        assert typed_ops.called("open_pod_logs") == []

    async def test_pod_without_containers(self, reader: LogStreamReader, typed_ops: FakeTypedOps):
        typed_ops.add_pod(make_pod("empty", "prod", containers=()))

        with pytest.raises(NotFoundError, match="no containers found in pod 'empty'"):
            await reader.read(LogRequest(pod_name="empty", namespace="prod"))

    async def test_pending_pod_rejected(self, reader: LogStreamReader, typed_ops: FakeTypedOps):
        typed_ops.add_pod(make_pod("web", "prod", phase="Pending"))

        with pytest.raises(InputValidationError) as exc_info:
            await reader.read(LogRequest(pod_name="web", namespace="prod"))

        assert "'Pending'" in str(exc_info.value)
        assert "previous=true" in str(exc_info.value)

    async def test_previous_allows_failed_pod(self, reader: LogStreamReader, typed_ops: FakeTypedOps):
        typed_ops.add_pod(make_pod("web", "prod", phase="Failed"))
        typed_ops.logs[("prod", "web", "app")] = b"panic: boom\n"

        result = await reader.read(LogRequest(pod_name="web", namespace="prod", previous=True))

        assert result.payload == "panic: boom\n"
        assert typed_ops.called("open_pod_logs")[0][1]["previous"] is True

    async def test_succeeded_pod_allowed(self, reader: LogStreamReader, typed_ops: FakeTypedOps):
        typed_ops.add_pod(make_pod("job", "prod", phase="Succeeded"))
        typed_ops.logs[("prod", "job", "app")] = b"done\n"

        result = await reader.read(LogRequest(pod_name="job", namespace="prod"))

        assert result.payload == "done\n"

    async def test_missing_pod(self, reader: LogStreamReader):
        with pytest.raises(NotFoundError, match="pod 'ghost' not found in namespace 'prod'"):
            await reader.read(LogRequest(pod_name="ghost", namespace="prod"))

    async def test_pod_name_required(self, reader: LogStreamReader):
        with pytest.raises(InputValidationError, match="pod name must be specified"):
            await reader.read(LogRequest(pod_name=""))

    async def test_empty_logs(self, reader: LogStreamReader, typed_ops: FakeTypedOps):
        typed_ops.add_pod(make_pod("quiet", "prod"))

        with pytest.raises(NotFoundError) as exc_info:
            await reader.read(LogRequest(pod_name="quiet", namespace="prod"))

        assert str(exc_info.value) == "no logs found for container 'app' in pod 'quiet'"
        assert typed_ops.streams[0].closed is True

    async def test_empty_previous_logs(self, reader: LogStreamReader, typed_ops: FakeTypedOps):
        typed_ops.add_pod(make_pod("quiet", "prod"))

        with pytest.raises(NotFoundError, match="no previous logs found"):
            await reader.read(LogRequest(pod_name="quiet", namespace="prod", previous=True))

    async def test_truncates_at_ceiling(self, reader: LogStreamReader, typed_ops: FakeTypedOps):
        typed_ops.add_pod(make_pod("noisy", "prod"))
        typed_ops.logs[("prod", "noisy", "app")] = b"a" * (MAX_LOG_BYTES + 5000)

        result = await reader.read(LogRequest(pod_name="noisy", namespace="prod"))

        assert result.truncated is True
        assert len(result.payload) == MAX_LOG_BYTES
        assert result.text.endswith(f"\n\n{TRUNCATION_NOTICE}")
        assert result.text.count(TRUNCATION_NOTICE) == 1
        assert typed_ops.streams[0].bytes_read == MAX_LOG_BYTES
        assert typed_ops.streams[0].closed is True

    async def test_just_under_ceiling_not_truncated(self, reader: LogStreamReader, typed_ops: FakeTypedOps):
        typed_ops.add_pod(make_pod("web", "prod"))
        typed_ops.logs[("prod", "web", "app")] = b"a" * (MAX_LOG_BYTES - 1)

        result = await reader.read(LogRequest(pod_name="web", namespace="prod"))

        assert result.truncated is False
        assert TRUNCATION_NOTICE not in result.text

    async def test_multibyte_cut_at_ceiling_stays_within_limit(
        self, reader: LogStreamReader, typed_ops: FakeTypedOps
    ):
        typed_ops.add_pod(make_pod("web", "prod"))
        typed_ops.logs[("prod", "web", "app")] = b"a" + "é".encode() * 60000

        result = await reader.read(LogRequest(pod_name="web", namespace="prod"))

        assert result.truncated is True
        assert len(result.payload.encode()) <= MAX_LOG_BYTES
        assert "\ufffd" not in result.payload
        assert result.payload.endswith("é")

    async def test_binary_log_stays_within_bytes_read(self, reader: LogStreamReader, typed_ops: FakeTypedOps):
        typed_ops.add_pod(make_pod("web", "prod"))
        typed_ops.logs[("prod", "web", "app")] = b"\xff" * 1000

        result = await reader.read(LogRequest(pod_name="web", namespace="prod"))

        assert result.truncated is False
        assert len(result.payload.encode()) <= 1000

    async def test_sub_second_since_rounds_up(self, reader: LogStreamReader, typed_ops: FakeTypedOps):
        typed_ops.add_pod(make_pod("web", "prod"))
        typed_ops.logs[("prod", "web", "app")] = b"x\n"

        result = await reader.read(LogRequest(pod_name="web", namespace="prod", since=parse_duration("500ms")))

        assert typed_ops.called("open_pod_logs")[0][1]["since_seconds"] == 1
        assert "since=1s" in result.header

    async def test_header_lists_options(self, reader: LogStreamReader, typed_ops: FakeTypedOps):
        typed_ops.add_pod(make_pod("web", "prod", phase="Failed"))
        typed_ops.logs[("prod", "web", "app")] = b"x\n"

        result = await reader.read(
            LogRequest(
                pod_name="web",
                namespace="prod",
                previous=True,
                tail_lines=50,
                since=timedelta(minutes=5),
            )
        )

        assert result.header == (
            "Logs from container 'app' in pod 'prod/web' (previous=true, tail=50, since=5m0s)"
        )
        kwargs = typed_ops.called("open_pod_logs")[0][1]
        assert kwargs["tail_lines"] == 50
        assert kwargs["since_seconds"] == 300

    async def test_non_positive_tail_is_ignored(self, reader: LogStreamReader, typed_ops: FakeTypedOps):
        typed_ops.add_pod(make_pod("web", "prod"))
        typed_ops.logs[("prod", "web", "app")] = b"x\n"

        result = await reader.read(LogRequest(pod_name="web", namespace="prod", tail_lines=0))

        assert "tail=" not in result.header
        assert typed_ops.called("open_pod_logs")[0][1]["tail_lines"] is None

    async def test_open_is_retried(self, reader: LogStreamReader, typed_ops: FakeTypedOps):
        typed_ops.add_pod(make_pod("web", "prod"))
        typed_ops.logs[("prod", "web", "app")] = b"x\n"
        typed_ops.fail("open_pod_logs", ConnectionResetError("reset"))

        result = await reader.read(LogRequest(pod_name="web", namespace="prod"))

        assert result.payload == "x\n"
        assert len(typed_ops.called("open_pod_logs")) == 2

    async def test_stream_closed_when_read_fails(
        self, reader: LogStreamReader, typed_ops: FakeTypedOps, monkeypatch: pytest.MonkeyPatch
    ):
        typed_ops.add_pod(make_pod("web", "prod"))
        typed_ops.logs[("prod", "web", "app")] = b"x\n"

        def broken_read(self, amt):
            raise ConnectionResetError("connection dropped")

        monkeypatch.setattr(FakeLogStream, "read", broken_read)

        with pytest.raises(Exception, match="connection dropped"):
            await reader.read(LogRequest(pod_name="web", namespace="prod"))
        assert typed_ops.streams[0].closed is True
