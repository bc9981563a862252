from __future__ import annotations

import base64

import pytest
from winrm.exceptions import WinRMError, WinRMOperationTimeoutError, WinRMTransportError

from services.ec2.launcher import TransportError, WinRMSession, winrm_connector
from services.ec2.launcher import transport


class FakeProtocol:
    def __init__(self, raw_outputs=(), run_results=(), open_error=None) -> None:
        self.raw_outputs = list(raw_outputs)
        self.run_results = list(run_results)
        self.open_error = open_error
        self.idle_timeouts: list[str | None] = []
        self.commands: list[tuple[str, str, tuple[str, ...]]] = []
        self.inputs: list[tuple[bytes, bool]] = []
        self.cleaned: list[str] = []
        self.closed_shells: list[str] = []

    def open_shell(self, idle_timeout=None):
        if self.open_error is not None:
            raise self.open_error
        self.idle_timeouts.append(idle_timeout)
        return f"shell-{len(self.idle_timeouts)}"

    def run_command(self, shell_id, command, arguments=()):
        self.commands.append((shell_id, command, tuple(arguments)))
        return f"cmd-{len(self.commands)}"

    def get_command_output(self, shell_id, command_id):
        return self.run_results.pop(0) if self.run_results else (b"", b"", 0)

    def get_command_output_raw(self, shell_id, command_id):
        item = self.raw_outputs.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def send_command_input(self, shell_id, command_id, stdin_input, end=False):
        self.inputs.append((stdin_input, end))

    def cleanup_command(self, shell_id, command_id):
        self.cleaned.append(command_id)

    def close_shell(self, shell_id, close_session=True):
        self.closed_shells.append(shell_id)


def make_session(protocol: FakeProtocol, use_https: bool = False) -> WinRMSession:
    return WinRMSession("10.0.0.5", "Administrator", "pw", use_https, protocol=protocol)


def test_endpoint_depends_on_https_flag() -> None:
    assert make_session(FakeProtocol()).endpoint == "http://10.0.0.5:5985/wsman"
    assert make_session(FakeProtocol(), use_https=True).endpoint == "https://10.0.0.5:5986/wsman"


def test_ping_opens_and_closes_a_shell() -> None:
    protocol = FakeProtocol()

    assert make_session(protocol).ping() is True
    assert protocol.closed_shells == ["shell-1"]


@pytest.mark.parametrize(
    "error",
    [WinRMTransportError("http", 500, "Bad HTTP response"), WinRMError("refused")],
)
def test_ping_failures_mean_unreachable(error) -> None:
    assert make_session(FakeProtocol(open_error=error)).ping() is False


def test_execute_streams_output_and_exit_code() -> None:
    protocol = FakeProtocol(
        raw_outputs=[
            (b"first ", b"", 0, False),
            WinRMOperationTimeoutError(),
            (b"second", b"warn", 3, True),
        ]
    )

    process = make_session(protocol).execute("java -jar agent.jar", timeout=86400)

    assert process.stdout.read() == b"first second"
    assert process.wait_for() == 3
    assert protocol.idle_timeouts == ["PT86400S"]
    assert protocol.commands == [("shell-1", "java -jar agent.jar", ())]


def test_process_stdin_and_destroy() -> None:
    protocol = FakeProtocol(raw_outputs=[(b"", b"", 0, True)])
    process = make_session(protocol).execute("agent")

    process.stdin.write(b"ping")
    process.stdin.close()
    process.destroy()
    process.destroy()

    assert protocol.inputs == [(b"ping", False), (b"", True)]
    assert protocol.cleaned == ["cmd-1"]
    assert protocol.closed_shells == ["shell-1"]


def test_lost_output_has_no_exit_status() -> None:
    protocol = FakeProtocol(raw_outputs=[WinRMTransportError("http", 503, "gone")])
    process = make_session(protocol).execute("agent")

    assert process.stdout.read() == b""
    with pytest.raises(TransportError, match="without an exit status"):
        process.wait_for()


def test_put_file_uploads_in_chunks(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(transport, "UPLOAD_CHUNK_BYTES", 4)
    protocol = FakeProtocol()
    session = make_session(protocol)

    with session.put_file("C:\\Windows\\Temp\\it's.bat") as out:
        out.write(b"echo hi")

    scripts = [args[-1] for _, command, args in protocol.commands]
    assert [command for _, command, _ in protocol.commands] == ["powershell", "powershell"]
    assert "FileMode]::Create" in scripts[0]
    assert "FileMode]::Append" in scripts[1]
    assert base64.b64encode(b"echo").decode() in scripts[0]
    assert base64.b64encode(b" hi").decode() in scripts[1]
    assert "it''s.bat" in scripts[0]
    assert protocol.cleaned == ["cmd-1", "cmd-2"]


def test_empty_file_is_still_created() -> None:
    protocol = FakeProtocol()

    make_session(protocol).upload("C:\\marker", b"")

    assert len(protocol.commands) == 1
    assert "FileMode]::Create" in protocol.commands[0][2][-1]


def test_failed_upload_raises() -> None:
    protocol = FakeProtocol(run_results=[(b"", b"Access denied", 1)])

    with pytest.raises(TransportError, match="Access denied"):
        make_session(protocol).upload("C:\\x", b"data")


def test_exists_checks_exit_code() -> None:
    protocol = FakeProtocol(run_results=[(b"", b"", 0), (b"", b"", 1)])
    session = make_session(protocol)

    assert session.exists("C:\\Windows\\Temp\\.jenkins-init") is True
    assert session.exists("C:\\Program Files\\missing") is False
    assert protocol.commands[1][1] == 'if exist "C:\\Program Files\\missing" (exit 0) else (exit 1)'


def test_closed_session_refuses_new_work_but_close_is_idempotent() -> None:
    session = make_session(FakeProtocol())

    session.close()
    session.close()

    assert session.closed
    with pytest.raises(TransportError):
        session.execute("dir")


def test_winrm_connector_uses_configured_ports() -> None:
    session = winrm_connector(http_port=15985, https_port=15986)("host", "u", "p", True)

    assert session.endpoint == "https://host:15986/wsman"
    assert session.username == "u"
