from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from services.ec2.launcher.errors import ConfigError
from services.ec2.launcher.types import LaunchContext, SecurityMode
from services.ec2.manager import (
    CONNECTION_STRATEGIES,
    DEFAULT_CONNECTION_STRATEGY,
    DEFAULT_REGION,
    PASSWORD_DATA_USER,
    get_env,
    get_env_bool,
    get_env_float,
    get_env_int,
)

DEFAULT_LAUNCH_TIMEOUT_MS = 30 * 60 * 1000
DEFAULT_BOOT_DELAY_SEC = 30.0


@dataclass
class LauncherConfig:
    """
    Launcher defaults read from the environment (or a .env file).

    Attributes:
        region: AWS region (EC2_REGION, AWS_REGION).
        launch_timeout_ms: Deadline for WinRM to come up (EC2_LAUNCH_TIMEOUT_MS).
        boot_delay_sec: Stabilization wait (EC2_BOOT_DELAY_SEC).
        remote_admin: Administrator account (EC2_WINDOWS_ADMIN).
        admin_password: Administrator password (EC2_WINDOWS_ADMIN_PASSWORD);
            when unset the password is derived from EC2 password data.
        private_key_path: Key pair PEM file (EC2_PRIVATE_KEY_PATH).
        use_https: Connect to WinRM over HTTPS (EC2_WINRM_HTTPS).
        tmp_dir: Remote working directory (EC2_TMP_DIR).
        connection_strategy: Address to connect to (EC2_CONNECTION_STRATEGY).
    """

    region: str = field(
        default_factory=lambda: get_env("EC2_REGION") or get_env("AWS_REGION") or DEFAULT_REGION
    )
    launch_timeout_ms: int = field(
        default_factory=lambda: get_env_int("EC2_LAUNCH_TIMEOUT_MS", DEFAULT_LAUNCH_TIMEOUT_MS)
    )
    boot_delay_sec: float = field(
        default_factory=lambda: get_env_float("EC2_BOOT_DELAY_SEC", DEFAULT_BOOT_DELAY_SEC)
    )
    remote_admin: str = field(
        default_factory=lambda: get_env("EC2_WINDOWS_ADMIN", PASSWORD_DATA_USER) or PASSWORD_DATA_USER
    )
    admin_password: str | None = field(default_factory=lambda: get_env("EC2_WINDOWS_ADMIN_PASSWORD"))
    private_key_path: str | None = field(default_factory=lambda: get_env("EC2_PRIVATE_KEY_PATH"))
    use_https: bool = field(default_factory=lambda: get_env_bool("EC2_WINRM_HTTPS", False))
    http_port: int = field(default_factory=lambda: get_env_int("EC2_WINRM_HTTP_PORT", 5985))
    https_port: int = field(default_factory=lambda: get_env_int("EC2_WINRM_HTTPS_PORT", 5986))
    tmp_dir: str = field(default_factory=lambda: get_env("EC2_TMP_DIR", "") or "")
    remote_fs: str = field(default_factory=lambda: get_env("EC2_REMOTE_FS", "") or "")
    jvm_opts: str | None = field(default_factory=lambda: get_env("EC2_JVM_OPTS"))
    java_path: str = field(default_factory=lambda: get_env("EC2_JAVA_PATH", "java") or "java")
    agent_name: str = field(default_factory=lambda: get_env("EC2_AGENT_NAME", "remoting.jar") or "remoting.jar")
    payload_dir: str | None = field(default_factory=lambda: get_env("EC2_AGENT_PAYLOAD_DIR"))
    payload_url: str | None = field(default_factory=lambda: get_env("EC2_AGENT_PAYLOAD_URL"))
    connection_strategy: str = field(
        default_factory=lambda: get_env("EC2_CONNECTION_STRATEGY", DEFAULT_CONNECTION_STRATEGY)
        or DEFAULT_CONNECTION_STRATEGY
    )
    stop_on_terminate: bool = field(default_factory=lambda: get_env_bool("EC2_STOP_ON_TERMINATE", False))

    def security_mode(self) -> SecurityMode:
        if self.admin_password:
            return SecurityMode.SPECIFIED_PASSWORD
        return SecurityMode.DERIVED_PASSWORD

    def read_private_key(self) -> str | None:
        if not self.private_key_path:
            return None
        path = Path(self.private_key_path).expanduser()
        try:
            return path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"Cannot read private key {path}: {exc}") from exc

    def to_context(
        self,
        instance_id: str,
        created_at: datetime,
        *,
        display_name: str = "",
        init_script: str | None = None,
    ) -> LaunchContext:
        """
        Build the LaunchContext for one instance.

        Raises:
            ConfigError: If the settings cannot produce usable credentials
                or name an unknown connection strategy.
        """
        if self.connection_strategy not in CONNECTION_STRATEGIES:
            raise ConfigError(f"Unknown connection strategy {self.connection_strategy!r}")
        mode = self.security_mode()
        private_key = None
        if mode is SecurityMode.DERIVED_PASSWORD:
            private_key = self.read_private_key()
            if not private_key:
                raise ConfigError(
                    "Set EC2_WINDOWS_ADMIN_PASSWORD or EC2_PRIVATE_KEY_PATH to resolve credentials"
                )
        return LaunchContext(
            instance_id=instance_id,
            created_at=created_at,
            display_name=display_name,
            launch_timeout_ms=self.launch_timeout_ms,
            security_mode=mode,
            remote_admin=self.remote_admin,
            admin_password=self.admin_password,
            private_key=private_key,
            use_https=self.use_https,
            boot_delay_sec=self.boot_delay_sec,
            stop_on_terminate=self.stop_on_terminate,
            tmp_dir=self.tmp_dir,
            init_script=init_script,
            jvm_opts=self.jvm_opts,
            remote_fs=self.remote_fs,
            connection_strategy=self.connection_strategy,
            agent_name=self.agent_name,
            java_path=self.java_path,
        )
