from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger("ec2_manager")

# EC2_* and AWS_* settings may live in a .env file beside this package
_env_path = Path(__file__).parent / ".env"
if _env_path.exists():
    load_dotenv(_env_path)
    logger.debug("Loaded environment from %s", _env_path)


def get_env(key: str, default: str | None = None) -> str | None:
    """
    Read a launcher setting such as ``EC2_REGION`` or ``EC2_TMP_DIR``.

    Values from the process environment win over the .env file.
    """
    return os.environ.get(key, default)


def get_env_float(key: str, default: float) -> float:
    """Read a fractional setting (``EC2_BOOT_DELAY_SEC``); invalid values log a warning."""
    value = os.environ.get(key)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning("Invalid float value key=%s value=%r, using default=%s", key, value, default)
        return default


def get_env_int(key: str, default: int) -> int:
    """
    Read a whole-number setting.

    Used for ``EC2_LAUNCH_TIMEOUT_MS`` and the WinRM ports
    (``EC2_WINRM_HTTP_PORT``, ``EC2_WINRM_HTTPS_PORT``). Anything that does not
    parse as an int falls back to ``default`` with a warning.
    """
    value = os.environ.get(key)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning("Invalid int value key=%s value=%r, using default=%s", key, value, default)
        return default


def get_env_bool(key: str, default: bool) -> bool:
    """
    Read a flag such as ``EC2_WINRM_HTTPS`` or ``EC2_STOP_ON_TERMINATE``.

    Accepts 1/0, true/false, yes/no and on/off (case-insensitive).
    """
    value = os.environ.get(key)
    if not value:
        return default
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    logger.warning("Invalid bool value key=%s value=%r, using default=%s", key, value, default)
    return default
