"""
WinRM session backed by pywinrm.

Implements the session surface the launcher needs on top of the WS-Man
shell API: probing, running commands with streamed output and input,
uploading files and checking for paths.
"""

from __future__ import annotations

import base64
import io
import logging
import queue
import threading
from typing import Any

from requests.exceptions import RequestException
from winrm.exceptions import WinRMError, WinRMOperationTimeoutError, WinRMTransportError
from winrm.protocol import Protocol

from services.ec2.launcher.errors import TransportError
from services.ec2.launcher.utils import quote_argument

logger = logging.getLogger("ec2_launcher")

WINRM_HTTP_PORT = 5985
WINRM_HTTPS_PORT = 5986
UPLOAD_CHUNK_BYTES = 3000

WINRM_ERRORS = (WinRMError, WinRMTransportError, RequestException)

_UPLOAD_SCRIPT = (
    "$b=[Convert]::FromBase64String('{data}');"
    "$f=[IO.File]::Open('{path}',[IO.FileMode]::{mode});"
    "$f.Write($b,0,$b.Length);$f.Close()"
)


class _OutputReader(io.RawIOBase):
    """Readable end fed by the process output thread; b"" marks EOF."""

    def __init__(self, chunks: queue.Queue[bytes]) -> None:
        self._chunks = chunks
        self._pending = b""
        self._eof = False

    def readable(self) -> bool:
        return True

    def readinto(self, buffer: Any) -> int:
        if not self._pending and not self._eof:
            chunk = self._chunks.get()
            if chunk:
                self._pending = chunk
            else:
                self._eof = True
        if not self._pending:
            return 0
        size = min(len(buffer), len(self._pending))
        buffer[:size] = self._pending[:size]
        self._pending = self._pending[size:]
        return size


class _CommandInput(io.RawIOBase):
    """Writable end forwarding each write to the command's stdin."""

    def __init__(self, protocol: Protocol, shell_id: str, command_id: str) -> None:
        self._protocol = protocol
        self._shell_id = shell_id
        self._command_id = command_id

    def writable(self) -> bool:
        return True

    def write(self, data: Any) -> int:
        payload = bytes(data)
        try:
            self._protocol.send_command_input(self._shell_id, self._command_id, payload)
        except WINRM_ERRORS as exc:
            raise TransportError(f"send_command_input failed: {exc}") from exc
        return len(payload)

    def close(self) -> None:
        if not self.closed:
            try:
                self._protocol.send_command_input(
                    self._shell_id, self._command_id, b"", end=True
                )
            except WINRM_ERRORS as exc:
                logger.debug("closing stdin failed command_id=%s: %s", self._command_id, exc)
        super().close()


class WinRMProcess:
    """A command started in its own WinRM shell."""

    def __init__(self, protocol: Protocol, shell_id: str, command_id: str) -> None:
        self._protocol = protocol
        self.shell_id = shell_id
        self.command_id = command_id
        self._chunks: queue.Queue[bytes] = queue.Queue()
        self._exit_code: int | None = None
        self._error: BaseException | None = None
        self._done = threading.Event()
        self._destroyed = False
        self.stdout = io.BufferedReader(_OutputReader(self._chunks))
        self.stdin = _CommandInput(protocol, shell_id, command_id)
        self._reader = threading.Thread(
            target=self._pump_output, name=f"winrm-output-{command_id}", daemon=True
        )
        self._reader.start()

    def _pump_output(self) -> None:
        try:
            while not self._destroyed:
                try:
                    out, err, return_code, done = self._protocol.get_command_output_raw(
                        self.shell_id, self.command_id
                    )
                except WinRMOperationTimeoutError:
                    continue
                if out:
                    self._chunks.put(out)
                if err:
                    logger.debug("stderr command_id=%s: %r", self.command_id, err)
                if done:
                    self._exit_code = return_code
                    break
        except WINRM_ERRORS as exc:
            self._error = exc
            logger.debug("output stopped command_id=%s: %s", self.command_id, exc)
        finally:
            self._chunks.put(b"")
            self._done.set()

    def wait_for(self) -> int:
        self._done.wait()
        if self._exit_code is None:
            raise TransportError(
                f"Command {self.command_id} ended without an exit status: {self._error}"
            )
        return self._exit_code

    def destroy(self) -> None:
        if self._destroyed:
            return
        self._destroyed = True
        try:
            self._protocol.cleanup_command(self.shell_id, self.command_id)
            self._protocol.close_shell(self.shell_id)
        except WINRM_ERRORS as exc:
            logger.warning("Failed to terminate command %s: %s", self.command_id, exc)


class _RemoteFileWriter(io.RawIOBase):
    """Buffers written bytes and uploads them when closed."""

    def __init__(self, session: WinRMSession, path: str) -> None:
        self._session = session
        self._path = path
        self._buffer = bytearray()

    def writable(self) -> bool:
        return True

    def write(self, data: Any) -> int:
        self._buffer += data
        return len(data)

    def close(self) -> None:
        if not self.closed:
            try:
                self._session.upload(self._path, bytes(self._buffer))
            finally:
                super().close()


class WinRMSession:
    """
    Authenticated handle to a WinRM endpoint.

    ``close`` only marks the session as finished; processes already started
    keep their shells until they are destroyed.
    """

    def __init__(
        self,
        host: str,
        username: str,
        password: str,
        use_https: bool = False,
        *,
        http_port: int = WINRM_HTTP_PORT,
        https_port: int = WINRM_HTTPS_PORT,
        transport: str = "ntlm",
        operation_timeout_sec: int = 20,
        read_timeout_sec: int = 30,
        protocol: Protocol | None = None,
    ) -> None:
        scheme, port = ("https", https_port) if use_https else ("http", http_port)
        self.host = host
        self.username = username
        self.use_https = use_https
        self.endpoint = f"{scheme}://{host}:{port}/wsman"
        self._protocol = protocol or Protocol(
            endpoint=self.endpoint,
            transport=transport,
            username=username,
            password=password,
            server_cert_validation="ignore",
            operation_timeout_sec=operation_timeout_sec,
            read_timeout_sec=read_timeout_sec,
        )
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _check_open(self) -> None:
        if self._closed:
            raise TransportError(f"Session to {self.endpoint} is closed")

    def ping(self) -> bool:
        self._check_open()
        try:
            shell_id = self._protocol.open_shell()
            self._protocol.close_shell(shell_id)
        except WINRM_ERRORS as exc:
            logger.debug("ping failed endpoint=%s: %s", self.endpoint, exc)
            return False
        return True

    def run(self, command: str, arguments: tuple[str, ...] = ()) -> tuple[int, bytes, bytes]:
        """Run a command to completion and return (exit_code, stdout, stderr)."""
        self._check_open()
        try:
            shell_id = self._protocol.open_shell()
            try:
                command_id = self._protocol.run_command(shell_id, command, arguments)
                try:
                    out, err, code = self._protocol.get_command_output(shell_id, command_id)
                finally:
                    self._protocol.cleanup_command(shell_id, command_id)
            finally:
                self._protocol.close_shell(shell_id)
        except WINRM_ERRORS as exc:
            raise TransportError(f"Command failed on {self.endpoint}: {exc}") from exc
        return code, out, err

    def execute(self, command: str, timeout: int | None = None) -> WinRMProcess:
        self._check_open()
        idle_timeout = f"PT{int(timeout)}S" if timeout else None
        try:
            shell_id = self._protocol.open_shell(idle_timeout=idle_timeout)
            command_id = self._protocol.run_command(shell_id, command)
        except WINRM_ERRORS as exc:
            raise TransportError(f"Could not start {command!r} on {self.endpoint}: {exc}") from exc
        logger.debug("execute endpoint=%s command=%s command_id=%s", self.endpoint, command, command_id)
        return WinRMProcess(self._protocol, shell_id, command_id)

    def put_file(self, path: str) -> io.BufferedWriter:
        self._check_open()
        return io.BufferedWriter(_RemoteFileWriter(self, path))

    def upload(self, path: str, data: bytes) -> None:
        """Write ``data`` to ``path`` on the instance, replacing any existing file."""
        escaped = path.replace("'", "''")
        offsets = range(0, len(data), UPLOAD_CHUNK_BYTES) if data else [0]
        for index, offset in enumerate(offsets):
            chunk = data[offset : offset + UPLOAD_CHUNK_BYTES]
            script = _UPLOAD_SCRIPT.format(
                data=base64.b64encode(chunk).decode("ascii"),
                path=escaped,
                mode="Create" if index == 0 else "Append",
            )
            code, _, err = self.run(
                "powershell", ("-NoProfile", "-NonInteractive", "-Command", script)
            )
            if code != 0:
                raise TransportError(
                    f"Upload to {path} failed (exit {code}): {err.decode('utf-8', 'replace').strip()}"
                )
        logger.debug("upload endpoint=%s path=%s bytes=%s", self.endpoint, path, len(data))

    def exists(self, path: str) -> bool:
        code, _, _ = self.run(f"if exist {quote_argument(path)} (exit 0) else (exit 1)")
        return code == 0

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            logger.debug("session closed endpoint=%s", self.endpoint)


def winrm_connector(
    http_port: int = WINRM_HTTP_PORT, https_port: int = WINRM_HTTPS_PORT
):
    """Return a connect callable that opens WinRMSessions on the given ports."""

    def connect(host: str, username: str, password: str, use_https: bool) -> WinRMSession:
        return WinRMSession(
            host, username, password, use_https, http_port=http_port, https_port=https_port
        )

    return connect
