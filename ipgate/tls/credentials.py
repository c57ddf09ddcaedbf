"""TLS credential loading for ipgate.

load_identity() reads the PEM certificate and private key once at startup and
returns a ServerIdentity. Both files are read concurrently in the default
executor; the call succeeds only if both reads succeed.

No structural validation happens here. A file that exists and is non-empty is
accepted as-is; malformed PEM data is only detected when create_ssl_context()
hands it to OpenSSL during listener startup, and surfaces as ListenerStartError.
"""

from __future__ import annotations

import asyncio
import os
import ssl
import tempfile
from dataclasses import dataclass
from pathlib import Path

from ipgate.errors import CredentialLoadError, ListenerStartError
from ipgate.utils.logger import get_logger

logger = get_logger(__name__)


# ─── ServerIdentity ───────────────────────────────────────────────────────────


@dataclass(frozen=True, repr=False)
class ServerIdentity:
    """Certificate and private key bytes, exactly as read from storage.

    repr is suppressed so the key never ends up in a log line or traceback.
    """

    cert: bytes
    key: bytes

    def __repr__(self) -> str:
        return f"ServerIdentity(cert=<{len(self.cert)} bytes>, key=<redacted>)"


# ─── Loading ──────────────────────────────────────────────────────────────────


def _read_credential_file(path: str) -> bytes:
    """Read one credential file; runs in the executor.

    Raises:
        CredentialLoadError: File missing, unreadable, or empty.
    """
    try:
        data = Path(path).read_bytes()
    except OSError as exc:
        raise CredentialLoadError(path, exc) from exc
    if not data:
        raise CredentialLoadError(path, "file is empty")
    return data


async def load_identity(cert_path: str, key_path: str) -> ServerIdentity:
    """Read the certificate and key concurrently and bundle them.

    Args:
        cert_path: Path to the PEM certificate (chain).
        key_path:  Path to the PEM private key.

    Returns:
        ServerIdentity holding both files' bytes.

    Raises:
        CredentialLoadError: Either file is missing, unreadable, or empty.
            When both fail, the certificate's error is reported.
    """
    loop = asyncio.get_running_loop()
    results = await asyncio.gather(
        loop.run_in_executor(None, _read_credential_file, cert_path),
        loop.run_in_executor(None, _read_credential_file, key_path),
        return_exceptions=True,
    )

    for result in results:
        if isinstance(result, BaseException):
            raise result

    cert, key = results
    logger.info(
        "TLS credentials loaded",
        cert_path=cert_path,
        key_path=key_path,
        cert_bytes=len(cert),
    )
    return ServerIdentity(cert=cert, key=key)


# ─── SSL context ──────────────────────────────────────────────────────────────


def _refuse_passphrase() -> bytes:
    # Without a callback OpenSSL would prompt on the controlling TTY.
    raise ValueError("encrypted private keys are not supported")


def create_ssl_context(identity: ServerIdentity, host: str, port: int) -> ssl.SSLContext:
    """Build a server-side SSLContext from an in-memory identity.

    ``ssl.SSLContext.load_cert_chain`` only accepts file paths, so the PEM bytes
    are written to a private temporary directory for the duration of the call.

    Args:
        identity: Certificate and key bytes.
        host, port: Listener address, used only for error reporting.

    Raises:
        ListenerStartError: OpenSSL rejected the certificate or key.
    """
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.minimum_version = ssl.TLSVersion.TLSv1_2

    try:
        with tempfile.TemporaryDirectory(prefix="ipgate-tls-") as tmpdir:
            cert_file = os.path.join(tmpdir, "cert.pem")
            key_file = os.path.join(tmpdir, "key.pem")
            with open(cert_file, "wb") as fh:
                fh.write(identity.cert)
            fd = os.open(key_file, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
            with os.fdopen(fd, "wb") as fh:
                fh.write(identity.key)
            context.load_cert_chain(cert_file, key_file, password=_refuse_passphrase)
    except (ssl.SSLError, OSError, ValueError) as exc:
        raise ListenerStartError(host, port, exc) from exc

    return context
