from __future__ import annotations

import logging

from services.ec2.launcher.bootstrap import bootstrap
from services.ec2.launcher.channel import wire_channel
from services.ec2.launcher.connection import establish
from services.ec2.launcher.deploy import deploy
from services.ec2.launcher.env import LauncherConfig
from services.ec2.launcher.errors import CommandFailedError, ConfigError, LaunchTimeoutError
from services.ec2.launcher.log import LaunchLog
from services.ec2.launcher.payloads import DirectoryPayloadProvider, HttpPayloadProvider
from services.ec2.launcher.transport import winrm_connector
from services.ec2.launcher.types import (
    Aborted,
    AgentPayloadProvider,
    ChannelEstablished,
    ChannelFactory,
    Connected,
    LaunchContext,
    LaunchServices,
    Outcome,
    RemoteSession,
    TimedOut,
)
from services.ec2.manager import Ec2InstanceManager

logger = logging.getLogger("ec2_launcher")


def build_services(
    config: LauncherConfig,
    *,
    channels: ChannelFactory | None = None,
    payloads: AgentPayloadProvider | None = None,
    manager: Ec2InstanceManager | None = None,
) -> LaunchServices:
    """Wire the default EC2, WinRM and payload adapters from ``config``."""
    if payloads is None:
        if config.payload_dir:
            payloads = DirectoryPayloadProvider(config.payload_dir)
        elif config.payload_url:
            payloads = HttpPayloadProvider(config.payload_url)
    return LaunchServices(
        instances=manager or Ec2InstanceManager(region=config.region),
        connect=winrm_connector(config.http_port, config.https_port),
        payloads=payloads,
        channels=channels,
    )


def connect(ctx: LaunchContext, services: LaunchServices, log: LaunchLog) -> Connected | TimedOut:
    """
    Wait for WinRM only. On Connected the caller owns (and must close) the session.
    """
    try:
        return Connected(establish(ctx, services, log))
    except LaunchTimeoutError as exc:
        log.info(str(exc))
        return TimedOut(exc.elapsed_seconds)


def launch(ctx: LaunchContext, services: LaunchServices, log: LaunchLog) -> Outcome:
    """
    Run one launch attempt: establish, bootstrap, deploy, wire the channel.

    Every failure is logged and mapped to an Outcome; nothing is raised. The
    session is closed on every path. On success the running agent and the
    channel stay up until the channel's close hook tears them down.
    """
    session: RemoteSession | None = None
    logger.info("launch start instance_id=%s", ctx.instance_id)
    try:
        if services.payloads is None or services.channels is None:
            raise ConfigError("An agent payload provider and a channel factory are required")
        session = establish(ctx, services, log)
        state = bootstrap(session, ctx, log)
        process = deploy(session, ctx, state.work_dir, services.payloads, log)
        channel = wire_channel(process, session, services.channels, log)
        logger.info("launch done instance_id=%s", ctx.instance_id)
        return ChannelEstablished(channel)
    except LaunchTimeoutError as exc:
        log.info(str(exc))
        return TimedOut(exc.elapsed_seconds)
    except CommandFailedError as exc:
        logger.warning("launch aborted instance_id=%s: %s", ctx.instance_id, exc)
        return Aborted(str(exc))
    except Exception as exc:  # noqa: BLE001 - any failure ends the attempt
        log.exception("Launch failed:", exc)
        return Aborted(f"{type(exc).__name__}: {exc}")
    finally:
        if session is not None:
            session.close()
