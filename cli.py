#!/usr/bin/env python3
"""
EC2 Windows agent launcher CLI

Waits for WinRM on a Windows EC2 instance, bootstraps it and runs the agent
with its streams attached to this process's stdin/stdout.
"""

import argparse
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

from services.ec2.launcher import (
    Aborted,
    ChannelEstablished,
    Connected,
    LauncherConfig,
    LauncherError,
    LaunchLog,
    StdioChannelFactory,
    TimedOut,
    build_services,
    connect,
    decrypt_windows_password,
    launch,
)
from services.ec2.manager import Ec2Error, Ec2InstanceManager


def get_config(args) -> LauncherConfig:
    """Merge command-line flags over the environment defaults"""
    config = LauncherConfig()
    overrides = {
        "region": args.region,
        "launch_timeout_ms": getattr(args, "timeout_ms", None),
        "boot_delay_sec": getattr(args, "boot_delay", None),
        "remote_admin": getattr(args, "admin", None),
        "private_key_path": getattr(args, "key", None),
        "tmp_dir": getattr(args, "tmp_dir", None),
        "remote_fs": getattr(args, "remote_fs", None),
        "jvm_opts": getattr(args, "jvm_opts", None),
        "connection_strategy": getattr(args, "strategy", None),
        "payload_dir": getattr(args, "payload_dir", None),
        "payload_url": getattr(args, "payload_url", None),
    }
    for key, value in overrides.items():
        if value is not None:
            setattr(config, key, value)
    if getattr(args, "https", False):
        config.use_https = True
    if getattr(args, "stop_on_terminate", False):
        config.stop_on_terminate = True
    return config


def get_manager(config: LauncherConfig) -> Ec2InstanceManager:
    return Ec2InstanceManager(region=config.region)


def _build_context(args, config: LauncherConfig, manager: Ec2InstanceManager):
    instance = manager.describe(args.instance_id)
    created_at = instance.launch_time or datetime.now(timezone.utc)
    init_script = None
    if args.init_script:
        init_script = Path(args.init_script).read_text(encoding="utf-8")
    return config.to_context(
        args.instance_id,
        created_at,
        display_name=instance.tags.get("Name", ""),
        init_script=init_script,
    )


def cmd_wait(args):
    """Wait until WinRM answers on an instance"""
    config = get_config(args)
    manager = get_manager(config)
    ctx = _build_context(args, config, manager)
    services = build_services(config, manager=manager)

    outcome = connect(ctx, services, LaunchLog(sys.stderr))
    if isinstance(outcome, Connected):
        outcome.session.close()

    if args.json:
        payload = {"instance_id": ctx.instance_id, "connected": isinstance(outcome, Connected)}
        if isinstance(outcome, TimedOut):
            payload["elapsed_seconds"] = outcome.elapsed_seconds
        print(json.dumps(payload, indent=2))
    elif isinstance(outcome, Connected):
        print(f"WinRM ready on {ctx.instance_id}")
    else:
        print(f"WinRM not ready on {ctx.instance_id} after {outcome.elapsed_seconds}s")

    if not isinstance(outcome, Connected):
        sys.exit(1)


def cmd_launch(args):
    """Bootstrap an instance and attach the agent to stdin/stdout"""
    config = get_config(args)
    manager = get_manager(config)
    ctx = _build_context(args, config, manager)
    services = build_services(config, channels=StdioChannelFactory(), manager=manager)

    outcome = launch(ctx, services, LaunchLog(sys.stderr))
    if isinstance(outcome, ChannelEstablished):
        outcome.channel.join()
        return
    if isinstance(outcome, Aborted):
        print(f"Launch aborted: {outcome.reason}", file=sys.stderr)
    elif isinstance(outcome, TimedOut):
        print(f"Launch timed out after {outcome.elapsed_seconds}s", file=sys.stderr)
    sys.exit(1)


def cmd_password(args):
    """Print the decrypted Administrator password of an instance"""
    config = get_config(args)
    manager = get_manager(config)
    private_key = config.read_private_key()
    if not private_key:
        print("Error: --key or EC2_PRIVATE_KEY_PATH is required", file=sys.stderr)
        sys.exit(1)

    password_data = manager.get_password_data(args.instance_id)
    if not password_data:
        print(f"Password for {args.instance_id} is not available yet", file=sys.stderr)
        sys.exit(1)

    password = decrypt_windows_password(password_data, private_key)
    if args.json:
        print(json.dumps({"instance_id": args.instance_id, "password": password}, indent=2))
    else:
        print(password)


def _add_launch_options(parser):
    parser.add_argument("instance_id", help="EC2 instance ID (i-...)")
    parser.add_argument("--timeout-ms", type=int, help="Launch timeout in milliseconds (min 3000)")
    parser.add_argument("--boot-delay", type=float, help="Seconds to let WinRM stabilize after it first answers")
    parser.add_argument("--admin", help="Administrator account (default: Administrator)")
    parser.add_argument("--key", help="Key pair PEM used to decrypt the generated password")
    parser.add_argument("--https", action="store_true", help="Connect to WinRM over HTTPS")
    parser.add_argument(
        "--strategy",
        choices=["public-ip", "private-ip", "public-dns", "private-dns"],
        help="Which instance address to connect to (default: public-ip)",
    )
    parser.add_argument("--tmp-dir", help="Remote working directory (default: C:\\Windows\\Temp\\)")
    parser.add_argument("--init-script", help="Local batch file run once on the instance")
    parser.add_argument("--stop-on-terminate", action="store_true", help="Instance may have been restarted; always re-stabilize")


def main():
    parser = argparse.ArgumentParser(
        description="EC2 Windows agent launcher",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    # Global options
    parser.add_argument("--region", help="AWS region (default: from .env, EC2_REGION or AWS_REGION)")
    parser.add_argument("--json", "-j", action="store_true", help="Output in JSON format")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Wait command
    wait_parser = subparsers.add_parser("wait", help="Wait until WinRM is usable on an instance")
    _add_launch_options(wait_parser)
    wait_parser.set_defaults(func=cmd_wait)

    # Launch command
    launch_parser = subparsers.add_parser("launch", help="Bootstrap an instance and run the agent")
    _add_launch_options(launch_parser)
    launch_parser.add_argument("--jvm-opts", help="Extra JVM options for the agent")
    launch_parser.add_argument("--remote-fs", help="Agent work directory on the instance")
    launch_parser.add_argument("--payload-dir", help="Local directory holding the agent payload")
    launch_parser.add_argument("--payload-url", help="Controller URL serving the agent payload")
    launch_parser.set_defaults(func=cmd_launch)

    # Password command
    password_parser = subparsers.add_parser("password", help="Decrypt the generated Administrator password")
    password_parser.add_argument("instance_id", help="EC2 instance ID (i-...)")
    password_parser.add_argument("--key", help="Key pair PEM file")
    password_parser.set_defaults(func=cmd_password)

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        stream=sys.stderr,
    )

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        args.func(args)
    except (LauncherError, Ec2Error) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
