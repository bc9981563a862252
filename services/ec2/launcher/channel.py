from __future__ import annotations

import functools
import logging
import sys
import threading
from typing import Any, BinaryIO

from services.ec2.launcher.log import LaunchLog
from services.ec2.launcher.types import Channel, ChannelFactory, CloseHook, RemoteProcess, RemoteSession

logger = logging.getLogger("ec2_launcher")

CHUNK_SIZE = 64 * 1024


def teardown(process: RemoteProcess, session: RemoteSession) -> None:
    """Terminate the remote agent and close its session."""
    try:
        process.destroy()
    finally:
        session.close()


class CloseOnce:
    """Wraps a close hook so it runs on the first call only."""

    def __init__(self, fn: CloseHook) -> None:
        self._fn = fn
        self._lock = threading.Lock()
        self._fired = False

    @property
    def fired(self) -> bool:
        return self._fired

    def __call__(self, cause: BaseException | None = None) -> None:
        with self._lock:
            if self._fired:
                return
            self._fired = True
        self._fn(cause)


def _teardown_hook(process: RemoteProcess, session: RemoteSession, cause: BaseException | None) -> None:
    if cause is not None:
        logger.info("channel closed with error: %s", cause)
    teardown(process, session)


def wire_channel(
    process: RemoteProcess,
    session: RemoteSession,
    factory: ChannelFactory,
    log: LaunchLog,
) -> Channel:
    """
    Hand the agent's stdout/stdin to the controller as a duplex channel.

    Closing the channel from either end terminates the agent and closes the
    session, exactly once.
    """
    on_close = CloseOnce(functools.partial(_teardown_hook, process, session))
    return factory.bind(process.stdout, process.stdin, log.sink, on_close)


def _read_chunk(stream: BinaryIO) -> bytes:
    read1 = getattr(stream, "read1", None)
    return read1(CHUNK_SIZE) if read1 is not None else stream.read(CHUNK_SIZE)


class StdioChannel:
    """
    Pumps bytes between the remote agent and a pair of local streams.

    One thread copies agent stdout to ``local_out``, another copies
    ``local_in`` to agent stdin. EOF or an error in either direction closes
    the channel.
    """

    def __init__(
        self,
        remote_out: BinaryIO,
        remote_in: BinaryIO,
        local_in: BinaryIO,
        local_out: BinaryIO,
        on_close: CloseHook,
    ) -> None:
        self._on_close = on_close
        self._closed = threading.Event()
        self._lock = threading.Lock()
        self.cause: BaseException | None = None
        self._threads = [
            threading.Thread(
                target=self._pump, args=(remote_out, local_out), name="agent-stdout", daemon=True
            ),
            threading.Thread(
                target=self._pump, args=(local_in, remote_in), name="agent-stdin", daemon=True
            ),
        ]

    def start(self) -> StdioChannel:
        for thread in self._threads:
            thread.start()
        return self

    def _pump(self, src: BinaryIO, dst: BinaryIO) -> None:
        try:
            while not self._closed.is_set():
                chunk = _read_chunk(src)
                if not chunk:
                    break
                dst.write(chunk)
                dst.flush()
        except (OSError, ValueError) as exc:
            self.close(exc)
            return
        self.close()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def close(self, cause: BaseException | None = None) -> None:
        with self._lock:
            if self._closed.is_set():
                return
            self.cause = cause
            self._closed.set()
        self._on_close(cause)

    def join(self, timeout: float | None = None) -> bool:
        """Block until the channel closes; returns False on timeout."""
        return self._closed.wait(timeout)


class StdioChannelFactory:
    """Binds agent streams to this process's stdin/stdout."""

    def __init__(self, local_in: BinaryIO | None = None, local_out: BinaryIO | None = None) -> None:
        self.local_in = local_in if local_in is not None else sys.stdin.buffer
        self.local_out = local_out if local_out is not None else sys.stdout.buffer

    def bind(self, stdout: BinaryIO, stdin: BinaryIO, sink: Any, on_close: CloseHook) -> StdioChannel:
        logger.debug("binding agent streams to local stdio")
        return StdioChannel(stdout, stdin, self.local_in, self.local_out, on_close).start()
