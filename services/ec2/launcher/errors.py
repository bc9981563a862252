from __future__ import annotations


class LauncherError(Exception):
    """Base exception for launch attempts."""

    pass


class ConfigError(LauncherError):
    """Raised when required launch settings are missing or invalid."""

    pass


class TransportError(LauncherError):
    """Raised when the WinRM endpoint cannot be reached or a call on it fails."""

    pass


class CredentialError(LauncherError):
    """Raised when the administrator password cannot be decrypted."""

    pass


class LaunchTimeoutError(LauncherError):
    """Raised when WinRM did not become usable before the launch deadline."""

    def __init__(self, elapsed_seconds: int) -> None:
        super().__init__(
            f"Timed out after {elapsed_seconds} seconds of waiting for winrm to be connected"
        )
        self.elapsed_seconds = elapsed_seconds


class CommandFailedError(LauncherError):
    """Raised when a bootstrap command exits with a nonzero status."""

    def __init__(self, step: str, exit_code: int) -> None:
        super().__init__(f"{step} failed: exit code={exit_code}")
        self.step = step
        self.exit_code = exit_code
