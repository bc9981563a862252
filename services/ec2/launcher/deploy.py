from __future__ import annotations

from services.ec2.launcher.log import LaunchLog
from services.ec2.launcher.types import (
    AgentPayloadProvider,
    LaunchCommand,
    LaunchContext,
    RemoteProcess,
    RemoteSession,
)
from services.ec2.launcher.utils import quote_argument

# The agent runs for as long as it is connected; this only bounds the
# WinRM shell's own idle bookkeeping.
AGENT_EXECUTION_TIMEOUT_SEC = 86400


def build_launch_command(ctx: LaunchContext, work_dir: str) -> LaunchCommand:
    agent_path = work_dir + ctx.agent_name
    jvm_opts = ctx.jvm_opts.strip() if ctx.jvm_opts and ctx.jvm_opts.strip() else None
    remote_fs = (ctx.remote_fs or "").strip()
    agent_work_dir = remote_fs or work_dir

    parts = [ctx.java_path]
    if jvm_opts:
        parts.append(jvm_opts)
    parts += ["-jar", quote_argument(agent_path), "-workDir", quote_argument(agent_work_dir)]
    return LaunchCommand(
        agent_path=agent_path,
        jvm_opts=jvm_opts,
        work_dir=agent_work_dir,
        command=" ".join(parts),
    )


def deploy(
    session: RemoteSession,
    ctx: LaunchContext,
    work_dir: str,
    payloads: AgentPayloadProvider,
    log: LaunchLog,
) -> RemoteProcess:
    """Upload the agent payload (always overwriting) and start it."""
    launch = build_launch_command(ctx, work_dir)
    with session.put_file(launch.agent_path) as out:
        out.write(payloads.fetch(ctx.agent_name))
    log.info("%s sent remotely. Bootstrapping it", ctx.agent_name)

    log.info("Launching via WinRM: %s", launch.command)
    return session.execute(launch.command, timeout=AGENT_EXECUTION_TIMEOUT_SEC)
