"""Root test configuration for ipgate.

Every test runs with a clean environment: the variables load_config() reads
are removed, the working directory is a fresh tmp dir and the home-directory
config path is redirected, so nothing on the host machine leaks in.

TLS material is a throwaway self-signed EC certificate for 127.0.0.1 and
localhost, generated once per session.
"""

from __future__ import annotations

import datetime
import ipaddress
from pathlib import Path
from typing import Callable

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from ipgate.config import AccessConfig, Config, ListenerConfig, TLSConfig

_ENV_VARS = (
    "HOST",
    "PORT",
    "WHITELIST_PATH",
    "HTTPS_CERT_PATH",
    "HTTPS_KEY_PATH",
    "LOG_LEVEL",
    "JSON_LOGS",
    "IPGATE_CONFIG",
    "DEBUG",
)


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(
        "ipgate.config.DEFAULT_CONFIG_PATHS",
        [".ipgate/config.yaml", str(tmp_path / "home" / ".ipgate" / "config.yaml")],
    )


def _generate_self_signed(common_name: str = "localhost") -> tuple[bytes, bytes]:
    key = ec.generate_private_key(ec.SECP256R1())
    subject = issuer = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.datetime.now(datetime.timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(minutes=5))
        .not_valid_after(now + datetime.timedelta(days=1))
        .add_extension(
            x509.SubjectAlternativeName([
                x509.DNSName("localhost"),
                x509.IPAddress(ipaddress.IPv4Address("127.0.0.1")),
            ]),
            critical=False,
        )
        .sign(key, hashes.SHA256())
    )
    cert_pem = cert.public_bytes(serialization.Encoding.PEM)
    key_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    return cert_pem, key_pem


@pytest.fixture(scope="session")
def tls_material() -> tuple[bytes, bytes]:
    """(cert_pem, key_pem) for a self-signed certificate."""
    return _generate_self_signed()


@pytest.fixture
def tls_files(tmp_path: Path, tls_material: tuple[bytes, bytes]) -> tuple[str, str]:
    """Write the session certificate and key to disk; return their paths."""
    cert_pem, key_pem = tls_material
    cert_path = tmp_path / "cert.pem"
    key_path = tmp_path / "key.pem"
    cert_path.write_bytes(cert_pem)
    key_path.write_bytes(key_pem)
    return str(cert_path), str(key_path)


@pytest.fixture
def write_allowlist(tmp_path: Path) -> Callable[[str], str]:
    """Write raw allow-list text (no newline translation); return the path."""

    def _write(content: str, name: str = "whitelist") -> str:
        path = tmp_path / name
        path.write_bytes(content.encode("utf-8"))
        return str(path)

    return _write


@pytest.fixture
def make_config(tls_files: tuple[str, str], tmp_path: Path) -> Callable[..., Config]:
    """Build a Config bound to 127.0.0.1 on an ephemeral port."""
    cert_path, key_path = tls_files

    def _make(
        whitelist_path: str | None = None,
        cert: str | None = None,
        key: str | None = None,
        port: int = 0,
    ) -> Config:
        return Config(
            listener=ListenerConfig(host="127.0.0.1", port=port),
            tls=TLSConfig(cert_path=cert or cert_path, key_path=key or key_path),
            access=AccessConfig(whitelist_path=whitelist_path or str(tmp_path / "whitelist")),
        )

    return _make
