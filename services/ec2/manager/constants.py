from __future__ import annotations

DEFAULT_REGION = "us-east-1"
DEFAULT_CONNECTION_STRATEGY = "public-ip"

# EC2 reports no address for a pending instance; the launcher treats this
# value as "not assigned yet".
UNASSIGNED_ADDRESS = "0.0.0.0"

# Instances older than this are assumed to have finished their first boot.
ALREADY_BOOTED_AGE_SEC = 3 * 60

# Derived-password mode only works for the built-in account.
PASSWORD_DATA_USER = "Administrator"

CONNECTION_STRATEGIES: dict[str, str] = {
    "public-ip": "public_ip",
    "private-ip": "private_ip",
    "public-dns": "public_dns",
    "private-dns": "private_dns",
}
