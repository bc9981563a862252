from __future__ import annotations

import logging
from pathlib import Path

import requests

logger = logging.getLogger("ec2_launcher")


class DirectoryPayloadProvider:
    """Serves agent payloads from a local directory."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def fetch(self, name: str) -> bytes:
        path = self.root / name
        logger.debug("payload fetch path=%s", path)
        return path.read_bytes()


class HttpPayloadProvider:
    """Downloads agent payloads from the controller, e.g. ``<url>/jnlpJars/remoting.jar``."""

    def __init__(self, base_url: str, timeout_sec: float = 60.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_sec = timeout_sec

    def fetch(self, name: str) -> bytes:
        url = f"{self.base_url}/{name}"
        logger.debug("payload fetch url=%s", url)
        resp = requests.get(url, timeout=self.timeout_sec)
        resp.raise_for_status()
        return resp.content
