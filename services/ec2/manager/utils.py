from __future__ import annotations

from datetime import datetime, timezone

from services.ec2.manager.constants import (
    ALREADY_BOOTED_AGE_SEC,
    CONNECTION_STRATEGIES,
    UNASSIGNED_ADDRESS,
)
from services.ec2.manager.manager import InstanceDescription


def select_host(instance: InstanceDescription, strategy: str) -> str:
    """
    Pick the address the launcher should connect to.

    Args:
        instance: Current instance description.
        strategy: One of ``public-ip``, ``private-ip``, ``public-dns``,
            ``private-dns``.

    Returns:
        The chosen address, or ``0.0.0.0`` when EC2 has not assigned it yet.

    Examples:
        public-ip with PublicIpAddress 54.1.2.3 -> "54.1.2.3"
        public-ip on a pending instance -> "0.0.0.0"
    """
    try:
        attr = CONNECTION_STRATEGIES[strategy]
    except KeyError:
        raise ValueError(
            f"Unknown connection strategy {strategy!r}; "
            f"expected one of {', '.join(CONNECTION_STRATEGIES)}"
        ) from None
    return getattr(instance, attr) or UNASSIGNED_ADDRESS


def already_booted(created_at: datetime, now: datetime | None = None) -> bool:
    """True when the instance was created long enough ago to have finished booting."""
    now = now or datetime.now(timezone.utc)
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return (now - created_at).total_seconds() > ALREADY_BOOTED_AGE_SEC
