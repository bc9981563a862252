from __future__ import annotations

import io
import logging
from typing import BinaryIO

from services.ec2.launcher.errors import CommandFailedError
from services.ec2.launcher.log import LaunchLog
from services.ec2.launcher.types import BootstrapState, LaunchContext, RemoteSession
from services.ec2.launcher.utils import ensure_ends_with, quote_argument

logger = logging.getLogger("ec2_launcher")

DEFAULT_TMP_DIR = "C:\\Windows\\Temp\\"
INIT_SCRIPT_NAME = "init.bat"
INIT_MARKER_NAME = ".jenkins-init"
INIT_MARKER_CONTENT = b"init ran"


def resolve_work_dir(tmp_dir: str | None) -> str:
    if tmp_dir and tmp_dir.strip():
        return ensure_ends_with(tmp_dir.strip(), "\\")
    return DEFAULT_TMP_DIR


def _stream_output(stream: BinaryIO, log: LaunchLog) -> None:
    reader = io.TextIOWrapper(stream, encoding="utf-8", errors="replace", newline="")
    for line in reader:
        log.write(line)


def bootstrap(session: RemoteSession, ctx: LaunchContext, log: LaunchLog) -> BootstrapState:
    """
    Prepare the working directory and run the init script once.

    The marker file ``.jenkins-init`` in the working directory is written only
    after the init script exited 0; while it exists the script is skipped.

    Raises:
        CommandFailedError: If mkdir or the init script exit nonzero.
    """
    work_dir = resolve_work_dir(ctx.tmp_dir)
    quoted_dir = quote_argument(work_dir)

    log.info("Creating tmp directory if it does not exist")
    exit_code = session.execute(f"if not exist {quoted_dir} mkdir {quoted_dir}").wait_for()
    if exit_code != 0:
        log.info("Creating tmpdir failed=%s", exit_code)
        raise CommandFailedError("mkdir", exit_code)

    init_script = ctx.init_script
    if not init_script or not init_script.strip():
        return BootstrapState(work_dir=work_dir, marker_present=None)

    marker_path = work_dir + INIT_MARKER_NAME
    if session.exists(marker_path):
        logger.debug("init already ran instance_id=%s marker=%s", ctx.instance_id, marker_path)
        return BootstrapState(work_dir=work_dir, marker_present=True, init_script=init_script)

    log.info("Executing init script")
    script_path = work_dir + INIT_SCRIPT_NAME
    with session.put_file(script_path) as out:
        out.write(init_script.encode("utf-8"))

    process = session.execute("cmd /c " + quote_argument(script_path))
    _stream_output(process.stdout, log)
    exit_status = process.wait_for()
    if exit_status != 0:
        log.info("init script failed: exit code=%s", exit_status)
        raise CommandFailedError("init script", exit_status)

    with session.put_file(marker_path) as marker:
        marker.write(INIT_MARKER_CONTENT)
    log.info("init script ran successfully")
    return BootstrapState(work_dir=work_dir, marker_present=True, init_script=init_script)
