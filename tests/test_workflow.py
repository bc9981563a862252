from __future__ import annotations

import pytest

from services.ec2.launcher import (
    Aborted,
    ChannelEstablished,
    Connected,
    TimedOut,
    connect,
    launch,
)
from services.ec2.launcher import connection
from tests.fakes import FakeClock, FakeInstances, FakeSession, make_ctx, make_log, make_services


@pytest.fixture(autouse=True)
def clock(monkeypatch: pytest.MonkeyPatch) -> FakeClock:
    fake = FakeClock()
    monkeypatch.setattr(connection, "time", fake.as_time_module())
    return fake


def test_launch_success_binds_channel_and_closes_session() -> None:
    session = FakeSession(responses={"cmd /c": (0, b"ok\n")})
    services = make_services(session=session)
    log = make_log()

    outcome = launch(make_ctx(init_script="echo setup"), services, log)

    assert isinstance(outcome, ChannelEstablished)
    marker, agent_path = "C:\\Windows\\Temp\\.jenkins-init", "C:\\Windows\\Temp\\remoting.jar"
    assert session.files[marker] == b"init ran"
    assert session.files[agent_path] == services.payloads.data
    assert session.uploads.index(marker) < session.uploads.index(agent_path)
    # Stages run in order: mkdir, init, agent.
    commands = [command for command, _ in session.commands]
    assert commands[0].startswith("if not exist")
    assert commands[1].startswith("cmd /c")
    assert commands[2].startswith("java ")
    assert session.close_calls == 1

    agent = session.processes[-1]
    outcome.channel.close()
    assert agent.destroy_calls == 1
    assert session.close_calls == 2


def test_launch_aborts_before_upload_when_mkdir_fails() -> None:
    session = FakeSession(responses={"if not exist": (1, b"")})
    services = make_services(session=session)

    outcome = launch(make_ctx(), services, make_log())

    assert outcome == Aborted("mkdir failed: exit code=1")
    assert session.uploads == []
    assert services.payloads.fetched == []
    assert session.close_calls == 1


def test_launch_aborts_when_init_script_fails() -> None:
    session = FakeSession(responses={"cmd /c": (1, b"")})
    services = make_services(session=session)

    outcome = launch(make_ctx(init_script="exit /b 1"), services, make_log())

    assert isinstance(outcome, Aborted)
    assert "C:\\Windows\\Temp\\.jenkins-init" not in session.files
    assert services.payloads.fetched == []
    assert services.channels.channels == []
    assert session.close_calls == 1


def test_launch_reports_timeout() -> None:
    services = make_services(instances=FakeInstances(addresses=[None]))

    outcome = launch(make_ctx(launch_timeout_ms=20_000), services, make_log())

    assert outcome == TimedOut(30)
    assert services.connect.calls == []


def test_unexpected_errors_are_logged_and_session_closed() -> None:
    class ExplodingPayloads:
        def fetch(self, name: str) -> bytes:
            raise FileNotFoundError(name)

    session = FakeSession()
    services = make_services(session=session, payloads=ExplodingPayloads())
    log = make_log()

    outcome = launch(make_ctx(), services, log)

    assert isinstance(outcome, Aborted)
    assert outcome.reason.startswith("FileNotFoundError")
    assert "Traceback" in log.sink.getvalue()
    assert session.close_calls == 1


def test_launch_requires_payloads_and_channels() -> None:
    services = make_services(channels=None)

    outcome = launch(make_ctx(), services, make_log())

    assert isinstance(outcome, Aborted)
    assert services.connect.calls == []


def test_connect_returns_open_session() -> None:
    session = FakeSession()

    outcome = connect(make_ctx(), make_services(session=session), make_log())

    assert outcome == Connected(session)
    assert session.close_calls == 0


def test_connect_reports_timeout() -> None:
    services = make_services(instances=FakeInstances(addresses=[None]))

    assert connect(make_ctx(launch_timeout_ms=0), services, make_log()) == TimedOut(10)
