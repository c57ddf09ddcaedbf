"""Tests for TLS credential loading and SSL context construction.

Covers:
  - load_identity() returns both files' bytes untouched
  - both-or-neither: missing, empty or unreadable cert/key → CredentialLoadError
  - the failing path and underlying cause are carried on the error
  - no PEM validation at load time
  - create_ssl_context() → ListenerStartError for malformed, mismatched or
    encrypted material
"""

from __future__ import annotations

import dataclasses
import ssl

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from ipgate.errors import BootstrapError, CredentialLoadError, ListenerStartError
from ipgate.tls.credentials import ServerIdentity, create_ssl_context, load_identity


@pytest.mark.asyncio
class TestLoadIdentity:

    async def test_loads_both_files(self, tls_files, tls_material) -> None:
        identity = await load_identity(*tls_files)
        assert identity.cert == tls_material[0]
        assert identity.key == tls_material[1]

    async def test_missing_cert(self, tls_files, tmp_path) -> None:
        missing = str(tmp_path / "nope.pem")
        with pytest.raises(CredentialLoadError) as excinfo:
            await load_identity(missing, tls_files[1])
        assert excinfo.value.path == missing
        assert isinstance(excinfo.value.cause, FileNotFoundError)

    async def test_missing_key(self, tls_files, tmp_path) -> None:
        missing = str(tmp_path / "nope.key")
        with pytest.raises(CredentialLoadError) as excinfo:
            await load_identity(tls_files[0], missing)
        assert excinfo.value.path == missing

    async def test_both_missing_reports_cert(self, tmp_path) -> None:
        cert = str(tmp_path / "a.pem")
        key = str(tmp_path / "b.pem")
        with pytest.raises(CredentialLoadError) as excinfo:
            await load_identity(cert, key)
        assert excinfo.value.path == cert

    async def test_empty_cert(self, tls_files, tmp_path) -> None:
        empty = tmp_path / "empty.pem"
        empty.write_bytes(b"")
        with pytest.raises(CredentialLoadError) as excinfo:
            await load_identity(str(empty), tls_files[1])
        assert excinfo.value.path == str(empty)
        assert "empty" in str(excinfo.value)

    async def test_directory_instead_of_file(self, tls_files, tmp_path) -> None:
        with pytest.raises(CredentialLoadError):
            await load_identity(tls_files[0], str(tmp_path))

    async def test_garbage_is_accepted_at_load_time(self, tmp_path) -> None:
        cert = tmp_path / "cert.pem"
        key = tmp_path / "key.pem"
        cert.write_bytes(b"not a certificate")
        key.write_bytes(b"not a key")
        identity = await load_identity(str(cert), str(key))
        assert identity.cert == b"not a certificate"

    async def test_error_is_a_bootstrap_error(self, tmp_path) -> None:
        with pytest.raises(BootstrapError) as excinfo:
            await load_identity(str(tmp_path / "x"), str(tmp_path / "y"))
        assert excinfo.value.stage == "loading_credentials"


class TestServerIdentity:

    def test_is_immutable(self) -> None:
        identity = ServerIdentity(cert=b"c", key=b"k")
        with pytest.raises(dataclasses.FrozenInstanceError):
            identity.cert = b"other"  # type: ignore[misc]

    def test_repr_hides_key(self) -> None:
        identity = ServerIdentity(cert=b"cert-bytes", key=b"SECRET-KEY")
        assert "SECRET-KEY" not in repr(identity)


class TestCreateSslContext:

    def test_valid_identity(self, tls_material) -> None:
        context = create_ssl_context(ServerIdentity(*tls_material), "127.0.0.1", 8443)
        assert isinstance(context, ssl.SSLContext)
        assert context.minimum_version == ssl.TLSVersion.TLSv1_2

    def test_malformed_pem(self) -> None:
        identity = ServerIdentity(cert=b"not a certificate", key=b"not a key")
        with pytest.raises(ListenerStartError) as excinfo:
            create_ssl_context(identity, "127.0.0.1", 8443)
        assert excinfo.value.host == "127.0.0.1"
        assert excinfo.value.port == 8443
        assert excinfo.value.stage == "starting_listener"

    def test_key_does_not_match_cert(self, tls_material) -> None:
        other_key = ec.generate_private_key(ec.SECP256R1()).private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
        with pytest.raises(ListenerStartError):
            create_ssl_context(ServerIdentity(tls_material[0], other_key), "0.0.0.0", 443)

    def test_encrypted_key_is_refused(self, tls_material) -> None:
        key = serialization.load_pem_private_key(tls_material[1], password=None)
        encrypted = key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.BestAvailableEncryption(b"passphrase"),
        )
        with pytest.raises(ListenerStartError):
            create_ssl_context(ServerIdentity(tls_material[0], encrypted), "0.0.0.0", 443)
