from __future__ import annotations


class Ec2Error(Exception):
    """Base exception for EC2 operations."""

    pass


class InstanceNotFoundError(Ec2Error):
    """Raised when an instance id is not known to EC2."""

    pass
