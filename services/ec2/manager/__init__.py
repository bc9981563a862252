from __future__ import annotations

from services.ec2.manager.constants import (
    ALREADY_BOOTED_AGE_SEC,
    CONNECTION_STRATEGIES,
    DEFAULT_CONNECTION_STRATEGY,
    DEFAULT_REGION,
    PASSWORD_DATA_USER,
    UNASSIGNED_ADDRESS,
)
from services.ec2.manager.env import get_env, get_env_bool, get_env_float, get_env_int
from services.ec2.manager.errors import Ec2Error, InstanceNotFoundError
from services.ec2.manager.manager import Ec2InstanceManager, InstanceDescription
from services.ec2.manager.utils import already_booted, select_host

__all__ = [
    "ALREADY_BOOTED_AGE_SEC",
    "CONNECTION_STRATEGIES",
    "DEFAULT_CONNECTION_STRATEGY",
    "DEFAULT_REGION",
    "PASSWORD_DATA_USER",
    "UNASSIGNED_ADDRESS",
    "get_env",
    "get_env_bool",
    "get_env_float",
    "get_env_int",
    "Ec2Error",
    "InstanceNotFoundError",
    "Ec2InstanceManager",
    "InstanceDescription",
    "already_booted",
    "select_host",
]
