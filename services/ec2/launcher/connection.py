from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from services.ec2.launcher.credentials import CredentialResolver
from services.ec2.launcher.errors import LaunchTimeoutError, TransportError
from services.ec2.launcher.log import LaunchLog
from services.ec2.launcher.types import LaunchContext, LaunchServices, RemoteSession
from services.ec2.manager import (
    UNASSIGNED_ADDRESS,
    Ec2Error,
    InstanceNotFoundError,
    already_booted,
    select_host,
)

logger = logging.getLogger("ec2_launcher")

MIN_LAUNCH_TIMEOUT_MS = 3000
RETRY_INTERVAL_SEC = 10


@dataclass(frozen=True)
class Unresolved:
    pass


@dataclass(frozen=True)
class AddressKnown:
    host: str


@dataclass(frozen=True)
class SessionOpen:
    session: RemoteSession


ConnectionState = Unresolved | AddressKnown | SessionOpen


def probe(session: RemoteSession, log: LaunchLog) -> bool:
    """Return True when the WinRM endpoint accepts commands."""
    try:
        return bool(session.ping())
    except (TransportError, OSError) as exc:
        # Authentication failures land here too and look like "not up yet".
        log.info("WinRM probe failed: %s", exc)
        return False


def _open_session(
    ctx: LaunchContext,
    services: LaunchServices,
    resolver: CredentialResolver,
    log: LaunchLog,
) -> ConnectionState:
    instance = services.instances.describe(ctx.instance_id)
    host = select_host(instance, ctx.connection_strategy)
    if host == UNASSIGNED_ADDRESS:
        log.info(
            "Invalid host %s, your host is most likely waiting for an ip address.",
            UNASSIGNED_ADDRESS,
        )
        return Unresolved()

    credentials = resolver.resolve()
    if credentials is None:
        return AddressKnown(host)

    log.info("Connecting to (%s) with WinRM as %s", host, credentials.username)
    session = services.connect(host, credentials.username, credentials.password, ctx.use_https)
    return SessionOpen(session)


def _backoff(log: LaunchLog, reason: str) -> None:
    log.info("%s Sleeping %ss.", reason, RETRY_INTERVAL_SEC)
    time.sleep(RETRY_INTERVAL_SEC)


def establish(ctx: LaunchContext, services: LaunchServices, log: LaunchLog) -> RemoteSession:
    """
    Wait until WinRM on the instance is usable and return an open session.

    Unassigned addresses, missing password data, unreachable endpoints and
    transport errors are retried every RETRY_INTERVAL_SEC until the deadline
    of max(launch_timeout_ms, 3000) ms passes.

    Raises:
        LaunchTimeoutError: When the deadline passes first.
        InstanceNotFoundError: When the instance does not exist.
    """
    timeout_ms = max(ctx.launch_timeout_ms, MIN_LAUNCH_TIMEOUT_MS)
    start = time.monotonic()
    log.info("%s booted at %s", ctx.name, ctx.created_at.isoformat())
    stabilized = already_booted(ctx.created_at) and not ctx.stop_on_terminate
    resolver = CredentialResolver(ctx, services, log)
    state: ConnectionState = Unresolved()

    try:
        while True:
            elapsed = time.monotonic() - start
            if elapsed * 1000 > timeout_ms:
                raise LaunchTimeoutError(int(elapsed))

            try:
                if not isinstance(state, SessionOpen):
                    state = _open_session(ctx, services, resolver, log)
                    if not isinstance(state, SessionOpen):
                        time.sleep(RETRY_INTERVAL_SEC)
                        continue
                session = state.session

                if not probe(session, log):
                    _backoff(log, "Waiting for WinRM to come up.")
                    continue

                if not stabilized:
                    log.info(
                        "WinRM service responded. Waiting for WinRM service to stabilize on %s",
                        ctx.name,
                    )
                    time.sleep(ctx.boot_delay_sec)
                    stabilized = True
                    log.info("WinRM should now be ok on %s", ctx.name)
                    if not probe(session, log):
                        _backoff(log, "WinRM not yet up.")
                        continue

                log.info("Connected with WinRM.")
                logger.info("connected instance_id=%s", ctx.instance_id)
                return session
            except InstanceNotFoundError:
                raise
            except (TransportError, Ec2Error, OSError) as exc:
                logger.debug("establish transient error instance_id=%s: %s", ctx.instance_id, exc)
                _backoff(log, "Waiting for WinRM to come up.")
    except BaseException:
        if isinstance(state, SessionOpen):
            state.session.close()
        raise
