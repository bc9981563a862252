"""
EC2 instance access for the Windows launcher.

Wraps the handful of EC2 calls the launcher needs: describing an instance
to learn its current addresses, and fetching the encrypted Windows
administrator password data.

Example:
    >>> from services.ec2.manager import Ec2InstanceManager
    >>> manager = Ec2InstanceManager(region="eu-west-1")
    >>> manager.describe("i-0123456789abcdef0").public_ip
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from services.ec2.manager.constants import DEFAULT_REGION
from services.ec2.manager.env import get_env
from services.ec2.manager.errors import Ec2Error, InstanceNotFoundError

if TYPE_CHECKING:
    from mypy_boto3_ec2 import EC2Client

logger = logging.getLogger("ec2_manager")


@dataclass(frozen=True)
class InstanceDescription:
    """
    Snapshot of an EC2 instance as returned by DescribeInstances.

    Attributes:
        instance_id: Instance identifier.
        state: Instance state name (pending, running, ...).
        public_ip: Public IPv4 address, if assigned.
        private_ip: Private IPv4 address, if assigned.
        public_dns: Public DNS name, if assigned.
        private_dns: Private DNS name, if assigned.
        launch_time: Time the instance was (re)started.
    """

    instance_id: str
    state: str
    public_ip: str | None = None
    private_ip: str | None = None
    public_dns: str | None = None
    private_dns: str | None = None
    launch_time: datetime | None = None
    tags: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> InstanceDescription:
        """
        Create InstanceDescription from a DescribeInstances entry.

        Args:
            data: One element of ``Reservations[].Instances[]``.

        Returns:
            InstanceDescription instance.
        """
        return cls(
            instance_id=data.get("InstanceId", ""),
            state=(data.get("State") or {}).get("Name", "unknown"),
            public_ip=data.get("PublicIpAddress") or None,
            private_ip=data.get("PrivateIpAddress") or None,
            public_dns=data.get("PublicDnsName") or None,
            private_dns=data.get("PrivateDnsName") or None,
            launch_time=data.get("LaunchTime"),
            tags={t["Key"]: t["Value"] for t in data.get("Tags", []) if "Key" in t},
        )


class Ec2InstanceManager:
    """
    Thin EC2 client used by the launcher.

    Attributes:
        region: AWS region the client talks to.
    """

    def __init__(self, region: str | None = None, client: EC2Client | None = None) -> None:
        """
        Args:
            region: AWS region. Falls back to AWS_REGION, AWS_DEFAULT_REGION,
                then ``us-east-1``.
            client: Pre-built boto3 EC2 client (mostly for tests).
        """
        self.region = (
            region or get_env("AWS_REGION") or get_env("AWS_DEFAULT_REGION") or DEFAULT_REGION
        )
        self._client = client

    @property
    def client(self) -> EC2Client:
        """Lazily create the boto3 EC2 client."""
        if self._client is None:
            import boto3

            self._client = boto3.client("ec2", region_name=self.region)
            logger.debug("EC2 client initialized region=%s", self.region)
        return self._client

    def describe(self, instance_id: str) -> InstanceDescription:
        """
        Describe a single instance.

        Raises:
            InstanceNotFoundError: If EC2 does not know the instance.
            Ec2Error: On any other API failure.
        """
        from botocore.exceptions import BotoCoreError, ClientError

        try:
            response = self.client.describe_instances(InstanceIds=[instance_id])
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code", "")
            if code == "InvalidInstanceID.NotFound":
                raise InstanceNotFoundError(f"Instance {instance_id} not found") from exc
            raise Ec2Error(f"describe_instances failed for {instance_id}: {exc}") from exc
        except BotoCoreError as exc:
            raise Ec2Error(f"describe_instances failed for {instance_id}: {exc}") from exc

        for reservation in response.get("Reservations", []):
            for instance in reservation.get("Instances", []):
                if instance.get("InstanceId") == instance_id:
                    return InstanceDescription.from_api_response(instance)
        raise InstanceNotFoundError(f"Instance {instance_id} not found")

    def get_password_data(self, instance_id: str) -> str | None:
        """
        Fetch the encrypted administrator password for a Windows instance.

        Returns:
            Base64 encoded ciphertext, or None while EC2 has not generated it.

        Raises:
            Ec2Error: On API failure.
        """
        from botocore.exceptions import BotoCoreError, ClientError

        try:
            response = self.client.get_password_data(InstanceId=instance_id)
        except (BotoCoreError, ClientError) as exc:
            raise Ec2Error(f"get_password_data failed for {instance_id}: {exc}") from exc
        data = (response.get("PasswordData") or "").strip()
        return data or None
