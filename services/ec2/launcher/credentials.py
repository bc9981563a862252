from __future__ import annotations

import base64
import binascii

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from services.ec2.launcher.errors import CredentialError
from services.ec2.launcher.log import LaunchLog
from services.ec2.launcher.types import Credentials, LaunchContext, LaunchServices, SecurityMode
from services.ec2.manager import PASSWORD_DATA_USER, Ec2Error


def decrypt_windows_password(password_data: str, private_key_pem: str | bytes) -> str:
    """
    Decrypt the administrator password EC2 generated for a Windows instance.

    Args:
        password_data: Base64 ciphertext from GetPasswordData.
        private_key_pem: PEM encoded RSA key of the instance key pair.

    Returns:
        The plaintext password.

    Raises:
        CredentialError: If the key or ciphertext is unusable.
    """
    if isinstance(private_key_pem, str):
        private_key_pem = private_key_pem.encode("utf-8")
    try:
        key = serialization.load_pem_private_key(private_key_pem, password=None)
    except (ValueError, TypeError) as exc:
        raise CredentialError(f"Invalid private key: {exc}") from exc
    if not isinstance(key, rsa.RSAPrivateKey):
        raise CredentialError("Windows password data can only be decrypted with an RSA key")
    try:
        ciphertext = base64.b64decode(password_data.strip(), validate=True)
        plaintext = key.decrypt(ciphertext, padding.PKCS1v15())
    except (binascii.Error, ValueError) as exc:
        raise CredentialError(f"Could not decrypt password data: {exc}") from exc
    return plaintext.decode("utf-8")


class CredentialResolver:
    """
    Resolves WinRM credentials for one launch attempt.

    ``resolve`` returns None while the credentials are not available yet;
    the caller retries after a backoff.
    """

    def __init__(self, ctx: LaunchContext, services: LaunchServices, log: LaunchLog) -> None:
        self.ctx = ctx
        self.services = services
        self.log = log
        self._admin_warned = False

    def resolve(self) -> Credentials | None:
        if self.ctx.security_mode is SecurityMode.SPECIFIED_PASSWORD:
            return Credentials(self.ctx.remote_admin, self.ctx.admin_password or "")
        return self._resolve_derived()

    def _resolve_derived(self) -> Credentials | None:
        if not self.ctx.private_key:
            raise CredentialError(
                f"No private key configured to decrypt the password of {self.ctx.instance_id}"
            )
        try:
            password_data = self.services.instances.get_password_data(self.ctx.instance_id)
        except Ec2Error as exc:
            self.log.info("Unexpected Exception: %s", exc)
            return None
        if not password_data:
            self.log.info("Waiting for password to be available. instance_id=%s", self.ctx.instance_id)
            return None

        decrypt = self.services.decrypt or decrypt_windows_password
        password = decrypt(password_data, self.ctx.private_key)
        if self.ctx.remote_admin != PASSWORD_DATA_USER and not self._admin_warned:
            self.log.warning(
                "For password retrieval remote admin must be %s, ignoring user provided value %r",
                PASSWORD_DATA_USER,
                self.ctx.remote_admin,
            )
            self._admin_warned = True
        return Credentials(PASSWORD_DATA_USER, password)
