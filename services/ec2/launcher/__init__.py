from __future__ import annotations

from services.ec2.launcher.bootstrap import (
    DEFAULT_TMP_DIR,
    INIT_MARKER_CONTENT,
    INIT_MARKER_NAME,
    INIT_SCRIPT_NAME,
    bootstrap,
    resolve_work_dir,
)
from services.ec2.launcher.channel import (
    CloseOnce,
    StdioChannel,
    StdioChannelFactory,
    teardown,
    wire_channel,
)
from services.ec2.launcher.connection import (
    MIN_LAUNCH_TIMEOUT_MS,
    RETRY_INTERVAL_SEC,
    AddressKnown,
    SessionOpen,
    Unresolved,
    establish,
    probe,
)
from services.ec2.launcher.credentials import CredentialResolver, decrypt_windows_password
from services.ec2.launcher.deploy import AGENT_EXECUTION_TIMEOUT_SEC, build_launch_command, deploy
from services.ec2.launcher.env import LauncherConfig
from services.ec2.launcher.errors import (
    CommandFailedError,
    ConfigError,
    CredentialError,
    LauncherError,
    LaunchTimeoutError,
    TransportError,
)
from services.ec2.launcher.log import LaunchLog
from services.ec2.launcher.payloads import DirectoryPayloadProvider, HttpPayloadProvider
from services.ec2.launcher.transport import WinRMProcess, WinRMSession, winrm_connector
from services.ec2.launcher.types import (
    Aborted,
    BootstrapState,
    ChannelEstablished,
    Connected,
    Credentials,
    LaunchCommand,
    LaunchContext,
    LaunchServices,
    Outcome,
    SecurityMode,
    TimedOut,
)
from services.ec2.launcher.workflow import build_services, connect, launch

__all__ = [
    "DEFAULT_TMP_DIR",
    "INIT_MARKER_CONTENT",
    "INIT_MARKER_NAME",
    "INIT_SCRIPT_NAME",
    "bootstrap",
    "resolve_work_dir",
    "CloseOnce",
    "StdioChannel",
    "StdioChannelFactory",
    "teardown",
    "wire_channel",
    "MIN_LAUNCH_TIMEOUT_MS",
    "RETRY_INTERVAL_SEC",
    "AddressKnown",
    "SessionOpen",
    "Unresolved",
    "establish",
    "probe",
    "CredentialResolver",
    "decrypt_windows_password",
    "AGENT_EXECUTION_TIMEOUT_SEC",
    "build_launch_command",
    "deploy",
    "LauncherConfig",
    "CommandFailedError",
    "ConfigError",
    "CredentialError",
    "LauncherError",
    "LaunchTimeoutError",
    "TransportError",
    "LaunchLog",
    "DirectoryPayloadProvider",
    "HttpPayloadProvider",
    "WinRMProcess",
    "WinRMSession",
    "winrm_connector",
    "Aborted",
    "BootstrapState",
    "ChannelEstablished",
    "Connected",
    "Credentials",
    "LaunchCommand",
    "LaunchContext",
    "LaunchServices",
    "Outcome",
    "SecurityMode",
    "TimedOut",
    "build_services",
    "connect",
    "launch",
]
