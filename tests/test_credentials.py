from __future__ import annotations

import base64

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from services.ec2.launcher import (
    CredentialError,
    CredentialResolver,
    Credentials,
    SecurityMode,
    decrypt_windows_password,
)
from tests.fakes import FakeInstances, make_ctx, make_log, make_services


@pytest.fixture(scope="module")
def key_pair() -> tuple[rsa.RSAPrivateKey, str]:
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")
    return key, pem


def _encrypt(key: rsa.RSAPrivateKey, password: str) -> str:
    ciphertext = key.public_key().encrypt(password.encode("utf-8"), padding.PKCS1v15())
    return base64.b64encode(ciphertext).decode("ascii")


def test_decrypt_windows_password(key_pair) -> None:
    key, pem = key_pair
    password_data = _encrypt(key, "Xy7!kq;Pw%2")

    assert decrypt_windows_password(password_data, pem) == "Xy7!kq;Pw%2"
    assert decrypt_windows_password("\n" + password_data + "\n", pem.encode("ascii")) == "Xy7!kq;Pw%2"


def test_decrypt_rejects_bad_key() -> None:
    with pytest.raises(CredentialError, match="Invalid private key"):
        decrypt_windows_password("AAAA", "not a key")


def test_decrypt_rejects_garbage_ciphertext(key_pair) -> None:
    _, pem = key_pair
    with pytest.raises(CredentialError, match="Could not decrypt"):
        decrypt_windows_password("not base64 !!", pem)


def test_specified_password_uses_configured_identity() -> None:
    instances = FakeInstances()
    resolver = CredentialResolver(make_ctx(), make_services(instances=instances), make_log())

    assert resolver.resolve() == Credentials("jenkins", "s3cret")
    assert instances.password_calls == 0


def test_derived_password_end_to_end(key_pair) -> None:
    key, pem = key_pair
    instances = FakeInstances(password_data=[_encrypt(key, "generated")])
    ctx = make_ctx(
        security_mode=SecurityMode.DERIVED_PASSWORD,
        remote_admin="Administrator",
        admin_password=None,
        private_key=pem,
    )
    resolver = CredentialResolver(ctx, make_services(instances=instances), make_log())

    assert resolver.resolve() == Credentials("Administrator", "generated")


def test_derived_password_without_key_is_a_config_problem() -> None:
    ctx = make_ctx(security_mode=SecurityMode.DERIVED_PASSWORD, private_key=None)
    resolver = CredentialResolver(ctx, make_services(), make_log())

    with pytest.raises(CredentialError, match="No private key"):
        resolver.resolve()


def test_credentials_repr_hides_password() -> None:
    assert "s3cret" not in repr(Credentials("Administrator", "s3cret"))
