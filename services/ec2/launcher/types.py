from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, BinaryIO, Protocol

from services.ec2.manager import DEFAULT_CONNECTION_STRATEGY, InstanceDescription


class SecurityMode(str, Enum):
    # Password generated by EC2 and decrypted with the launch key pair.
    DERIVED_PASSWORD = "derived-password"
    # Username and password supplied by the operator.
    SPECIFIED_PASSWORD = "specified-password"


@dataclass(frozen=True)
class LaunchContext:
    """
    Immutable inputs of one launch attempt.

    Attributes:
        instance_id: EC2 instance to bootstrap.
        created_at: When the instance was launched; decides whether the
            first boot is assumed to be over.
        launch_timeout_ms: Deadline for WinRM to become usable. Values below
            3000 are raised to 3000.
        security_mode: How the administrator password is obtained.
        remote_admin: Administrator account name.
        admin_password: Password for SPECIFIED_PASSWORD mode.
        private_key: PEM key pair used to decrypt DERIVED_PASSWORD data.
        use_https: Talk to WinRM over HTTPS.
        boot_delay_sec: Stabilization wait after WinRM first answers.
        stop_on_terminate: Instance is stopped rather than terminated, so
            it may come back from a restart and must be re-stabilized.
        tmp_dir: Remote working directory; blank means the system temp dir.
        init_script: Batch script run once per working directory.
        jvm_opts: Extra options inserted verbatim into the agent command.
        remote_fs: Agent work directory; blank means the working directory.
    """

    instance_id: str
    created_at: datetime
    display_name: str = ""
    launch_timeout_ms: int = 0
    security_mode: SecurityMode = SecurityMode.DERIVED_PASSWORD
    remote_admin: str = "Administrator"
    admin_password: str | None = None
    private_key: str | None = None
    use_https: bool = False
    boot_delay_sec: float = 0.0
    stop_on_terminate: bool = False
    tmp_dir: str = ""
    init_script: str | None = None
    jvm_opts: str | None = None
    remote_fs: str = ""
    connection_strategy: str = DEFAULT_CONNECTION_STRATEGY
    agent_name: str = "remoting.jar"
    java_path: str = "java"

    @property
    def name(self) -> str:
        return self.display_name or self.instance_id


@dataclass(frozen=True)
class Credentials:
    username: str
    password: str

    def __repr__(self) -> str:
        return f"Credentials(username={self.username!r}, password='***')"


@dataclass(frozen=True)
class BootstrapState:
    work_dir: str
    # None when no init script is configured and the marker was not checked.
    marker_present: bool | None
    init_script: str | None = None


@dataclass(frozen=True)
class LaunchCommand:
    agent_path: str
    jvm_opts: str | None
    work_dir: str
    command: str


class RemoteProcess(Protocol):
    stdout: BinaryIO
    stdin: BinaryIO

    def wait_for(self) -> int: ...

    def destroy(self) -> None: ...


class RemoteSession(Protocol):
    def ping(self) -> bool: ...

    def execute(self, command: str, timeout: int | None = None) -> RemoteProcess: ...

    def put_file(self, path: str) -> BinaryIO: ...

    def exists(self, path: str) -> bool: ...

    def close(self) -> None: ...


class InstanceSource(Protocol):
    def describe(self, instance_id: str) -> InstanceDescription: ...

    def get_password_data(self, instance_id: str) -> str | None: ...


class AgentPayloadProvider(Protocol):
    def fetch(self, name: str) -> bytes: ...


class Channel(Protocol):
    def close(self, cause: BaseException | None = None) -> None: ...


CloseHook = Callable[[BaseException | None], None]


class ChannelFactory(Protocol):
    def bind(
        self, stdout: BinaryIO, stdin: BinaryIO, sink: Any, on_close: CloseHook
    ) -> Channel: ...


SessionConnector = Callable[[str, str, str, bool], RemoteSession]


@dataclass(frozen=True)
class LaunchServices:
    """External collaborators of a launch attempt."""

    instances: InstanceSource
    connect: SessionConnector
    payloads: AgentPayloadProvider | None = None
    channels: ChannelFactory | None = None
    # Defaults to RSA PKCS#1 v1.5 decryption of EC2 password data.
    decrypt: Callable[[str, str], str] | None = None


@dataclass(frozen=True)
class Connected:
    session: RemoteSession


@dataclass(frozen=True)
class TimedOut:
    elapsed_seconds: int


@dataclass(frozen=True)
class Aborted:
    reason: str


@dataclass(frozen=True)
class ChannelEstablished:
    channel: Channel


Outcome = Connected | TimedOut | Aborted | ChannelEstablished
