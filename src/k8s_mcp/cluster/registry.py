# ABOUTME: Connection registry holding named cluster sessions and current context/namespace
# ABOUTME: Guards shared state with a reader/writer lock; never holds it across network calls

"""
Connection registry.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

The registry is the only shared mutable state in the server. It holds:

    sessions            name -> ClusterSession (typed + generic clients)
    current context     which session "the current cluster" means
    current namespace   default namespace for operations that omit one

Several tool calls may run at once (the transport multiplexes requests, and
blocking client calls run in worker threads), so every access goes through
locked accessor methods. Reads take a SHARED lock, writes an EXCLUSIVE lock.
The raw mapping is never handed out; callers receive immutable snapshots
(frozen dataclasses, tuples, copies).

=============================================================================
SESSION LIFECYCLE
=============================================================================

    Unregistered --register--> Registered --register again--> Replaced
                                          --remove----------> Removed

Registration builds clients and probes the cluster BEFORE taking the lock.
Only once the probe succeeds does the registry lock and swap the new session
in. A failed registration therefore leaves no trace, and the lock is never
held while waiting on the network.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

import structlog

from k8s_mcp.cluster.clients import ClusterClients, connect
from k8s_mcp.cluster.kubeconfig import (
    DEFAULT_NAMESPACE,
    ContextInfo,
    LoadedKubeconfig,
    load_in_cluster,
    load_kubeconfig,
)
from k8s_mcp.cluster.retry import READ_TIMEOUT, SINGLE_ATTEMPT, run_remote
from k8s_mcp.errors import (
    ClusterConnectionError,
    ConfigError,
    InputValidationError,
    KubernetesMcpError,
    NotFoundError,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from k8s_mcp.cluster.clients import GenericResourceOps, TypedResourceOps

logger = structlog.get_logger(__name__)

NO_CLUSTERS_MESSAGE = "no clusters configured - use the load_kubeconfig tool first"


class ReadWriteLock:
    """
    Many readers or one writer.

    Writers are preferred: once a writer is waiting, new readers queue behind
    it so a steady stream of reads cannot starve a registration.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


@dataclass(frozen=True)
class ClusterSession:
    """
    One registered cluster connection. Never mutated; replaced wholesale.

    Attributes:
        name: Registry key chosen by the caller.
        clients: Typed and generic capability set for this cluster.
        source_path: Kubeconfig path the session was built from ("" in-cluster).
        info: Summary of the context the clients were built for.
    """

    name: str
    clients: ClusterClients
    source_path: str
    info: ContextInfo

    @property
    def typed(self) -> TypedResourceOps:
        return self.clients.typed

    @property
    def generic(self) -> GenericResourceOps:
        return self.clients.generic


class ConnectionRegistry:
    """Named cluster sessions plus the current context and namespace."""

    def __init__(
        self,
        connector: Callable[[LoadedKubeconfig], ClusterClients] = connect,
        probe_timeout: float = READ_TIMEOUT,
        default_namespace: str = DEFAULT_NAMESPACE,
    ) -> None:
        self._connector = connector
        self._probe_timeout = probe_timeout
        self._lock = ReadWriteLock()
        self._sessions: dict[str, ClusterSession] = {}
        self._current_context = ""
        self._current_namespace = default_namespace or DEFAULT_NAMESPACE

    # -------------------------------------------------------------------------
    # REGISTRATION (writes)
    # -------------------------------------------------------------------------

    async def register(self, name: str, kubeconfig_path: str | None) -> ClusterSession:
        """
        Register (or replace) the cluster described by a kubeconfig file.

        Args:
            name: Registry key. Must be non-empty.
            kubeconfig_path: Path to the kubeconfig; empty means ~/.kube/config.

        Returns:
            The new session.

        Raises:
            ConfigError: Empty name, or the kubeconfig is missing/unreadable/
                         a directory/malformed.
            ClusterConnectionError: The liveness probe failed.
        """
        if not name:
            raise ConfigError("cluster name cannot be empty")
        loaded = load_kubeconfig(kubeconfig_path)
        return await self.register_loaded(name, loaded)

    async def register_in_cluster(self, name: str = "in-cluster") -> ClusterSession:
        """Register the cluster this process runs in, via its service account."""
        loaded = load_in_cluster(name or "in-cluster")
        return await self.register_loaded(name or "in-cluster", loaded)

    async def register_loaded(self, name: str, loaded: LoadedKubeconfig) -> ClusterSession:
        """Connect, probe, and atomically insert a session for a parsed config."""
        if not name:
            raise ConfigError("cluster name cannot be empty")

        try:
            clients = self._connector(loaded)
        except KubernetesMcpError:
            raise
        except Exception as e:
            raise ConfigError(f"error creating clients for cluster '{name}'", str(e)) from e

        await self._probe(name, clients)

        info = loaded.active_context or ContextInfo(
            name=loaded.current_context,
            cluster="",
            user="",
            namespace="",
            server_url=loaded.configuration.host,
            config_path=loaded.source_path,
        )
        session = ClusterSession(
            name=name,
            clients=clients,
            source_path=loaded.source_path,
            info=replace(info, name=name),
        )

        with self._lock.write():
            replaced = name in self._sessions
            first = not self._sessions
            self._sessions[name] = session
            if first or loaded.current_context == name:
                self._current_context = name

        logger.info(
            "Cluster registered",
            cluster=name,
            server=session.info.server_url,
            replaced=replaced,
        )
        return session

    async def _probe(self, name: str, clients: ClusterClients) -> None:
        """Cheap bounded list call proving the API answers with our credentials."""
        try:
            await run_remote(
                f"connect to cluster '{name}'",
                clients.typed.list_namespaces,
                limit=1,
                timeout=self._probe_timeout,
                policy=SINGLE_ATTEMPT,
                deadline=self._probe_timeout,
            )
        except ClusterConnectionError:
            raise
        except KubernetesMcpError as e:
            raise ClusterConnectionError(f"failed to connect to cluster '{name}'", str(e)) from e

    def remove(self, name: str) -> None:
        """
        Remove a session. If it was current, another registered name
        (lexicographically first) becomes current, or none.
        """
        with self._lock.write():
            if name not in self._sessions:
                raise NotFoundError(f"cluster '{name}' not found")
            del self._sessions[name]
            if self._current_context == name:
                self._current_context = min(self._sessions, default="")
            new_current = self._current_context

        logger.info("Cluster removed", cluster=name, new_current=new_current)

    def rename(self, old_name: str, new_name: str) -> None:
        """Move a session to a new key; the current context follows it."""
        if not new_name:
            raise InputValidationError("new cluster name cannot be empty")
        if old_name == new_name:
            raise InputValidationError("old and new cluster names cannot be the same")

        with self._lock.write():
            session = self._sessions.get(old_name)
            if session is None:
                raise NotFoundError(f"cluster '{old_name}' not found")
            if new_name in self._sessions:
                raise InputValidationError(f"cluster '{new_name}' already exists")
            self._sessions[new_name] = replace(
                session, name=new_name, info=replace(session.info, name=new_name)
            )
            del self._sessions[old_name]
            if self._current_context == old_name:
                self._current_context = new_name

        logger.info("Cluster renamed", old=old_name, new=new_name)

    def set_current_context(self, name: str) -> None:
        """Make ``name`` the current cluster. NotFoundError if unregistered."""
        with self._lock.write():
            if name not in self._sessions:
                raise NotFoundError(f"cluster '{name}' not found")
            previous = self._current_context
            self._current_context = name

        logger.info("Context switched", previous=previous, current=name)

    def set_current_namespace(self, namespace: str) -> None:
        """Store the default namespace. Empty normalizes to "default"; not validated remotely."""
        with self._lock.write():
            self._current_namespace = namespace or DEFAULT_NAMESPACE

    # -------------------------------------------------------------------------
    # LOOKUPS (reads)
    # -------------------------------------------------------------------------

    def lookup(self, name: str) -> ClusterSession:
        with self._lock.read():
            session = self._sessions.get(name)
        if session is None:
            raise NotFoundError(f"cluster '{name}' not found")
        return session

    def current(self) -> ClusterSession:
        """
        The session for the current context.

        Falls back to an arbitrary registered session when the current
        context names nothing registered.

        Raises:
            ClusterConnectionError: No cluster is registered at all.
        """
        with self._lock.read():
            session = self._sessions.get(self._current_context)
            if session is None and self._sessions:
                session = next(iter(self._sessions.values()))
        if session is None:
            raise ClusterConnectionError(NO_CLUSTERS_MESSAGE)
        return session

    def get_current_context(self) -> str:
        with self._lock.read():
            return self._current_context

    def get_current_namespace(self) -> str:
        with self._lock.read():
            return self._current_namespace

    def list_registered(self) -> list[str]:
        with self._lock.read():
            return list(self._sessions)

    def list_contexts(self) -> list[ContextInfo]:
        """Snapshots of every session's context, sorted by name."""
        with self._lock.read():
            current = self._current_context
            infos = [s.info for s in self._sessions.values()]
        return sorted(
            (replace(info, is_active=info.name == current) for info in infos),
            key=lambda info: info.name,
        )

    def describe(self, name: str) -> ContextInfo:
        session = self.lookup(name)
        return replace(session.info, is_active=session.name == self.get_current_context())
