from __future__ import annotations

import pytest

from services.ec2.launcher import (
    DEFAULT_TMP_DIR,
    INIT_MARKER_CONTENT,
    INIT_MARKER_NAME,
    CommandFailedError,
    bootstrap,
    resolve_work_dir,
)
from tests.fakes import FakeSession, make_ctx, make_log

MARKER = "C:\\Windows\\Temp\\.jenkins-init"
SCRIPT = "C:\\Windows\\Temp\\init.bat"


def test_resolve_work_dir() -> None:
    assert resolve_work_dir("") == DEFAULT_TMP_DIR
    assert resolve_work_dir("   ") == DEFAULT_TMP_DIR
    assert resolve_work_dir(None) == DEFAULT_TMP_DIR
    assert resolve_work_dir("D:\\agent") == "D:\\agent\\"
    assert resolve_work_dir("D:\\agent\\") == "D:\\agent\\"


def test_mkdir_is_guarded_and_quoted() -> None:
    session = FakeSession()

    state = bootstrap(session, make_ctx(tmp_dir="D:\\build agent"), make_log())

    assert session.commands[0] == (
        'if not exist "D:\\build agent\\\\" mkdir "D:\\build agent\\\\"',
        None,
    )
    assert state.work_dir == "D:\\build agent\\"
    assert state.marker_present is None


def test_mkdir_failure_aborts() -> None:
    session = FakeSession(responses={"if not exist": (5, b"")})
    log = make_log()

    with pytest.raises(CommandFailedError) as excinfo:
        bootstrap(session, make_ctx(init_script="echo hi"), log)

    assert excinfo.value.exit_code == 5
    assert session.uploads == []
    assert "Creating tmpdir failed=5" in log.sink.getvalue()


def test_init_script_runs_and_writes_marker() -> None:
    session = FakeSession(responses={"cmd /c": (0, b"installing\r\ndone\r\n")})
    log = make_log()

    state = bootstrap(session, make_ctx(init_script="choco install jdk\r\n"), log)

    assert session.files[SCRIPT] == b"choco install jdk\r\n"
    assert session.files[MARKER] == INIT_MARKER_CONTENT == b"init ran"
    assert session.uploads == [SCRIPT, MARKER]
    assert session.commands[1] == ("cmd /c " + SCRIPT, None)
    assert state.marker_present is True
    output = log.sink.getvalue()
    assert "installing" in output
    assert "init script ran successfully" in output


def test_init_script_failure_leaves_no_marker() -> None:
    session = FakeSession(responses={"cmd /c": (1, b"boom\n")})
    log = make_log()

    with pytest.raises(CommandFailedError) as excinfo:
        bootstrap(session, make_ctx(init_script="exit /b 1"), log)

    assert excinfo.value.step == "init script"
    assert excinfo.value.exit_code == 1
    assert MARKER not in session.files
    assert "init script failed: exit code=1" in log.sink.getvalue()


def test_existing_marker_skips_init() -> None:
    session = FakeSession(files={MARKER: b"init ran"})

    state = bootstrap(session, make_ctx(init_script="echo again"), make_log())

    assert session.uploads == []
    assert len(session.commands) == 1
    assert state.marker_present is True


def test_marker_left_by_earlier_launchers_is_honoured() -> None:
    assert INIT_MARKER_NAME == ".jenkins-init"
    session = FakeSession(files={DEFAULT_TMP_DIR + ".jenkins-init": b""})

    state = bootstrap(session, make_ctx(init_script="echo again"), make_log())

    assert state.marker_present is True
    assert session.uploads == []


def test_blank_init_script_is_ignored() -> None:
    session = FakeSession()

    bootstrap(session, make_ctx(init_script="  \n"), make_log())

    assert session.uploads == []
    assert len(session.commands) == 1
