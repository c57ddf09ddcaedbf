"""Error taxonomy for ipgate.

Bootstrap errors are fatal: the process logs them and exits with status 1.
AllowListReadError is per-request: the access gate turns it into HTTP 500 for
the affected request only.

A rejected admission is not an error; see ipgate.gate.AdmissionDecision.
"""

from __future__ import annotations

from typing import Optional


class IpgateError(Exception):
    """Base class for all ipgate errors."""


class BootstrapError(IpgateError):
    """Startup failed; no server may be left accepting traffic.

    ``stage`` is the BootstrapState value that was active when the failure
    occurred (``None`` when raised outside the sequencer).
    """

    def __init__(self, message: str, stage: Optional[str] = None) -> None:
        super().__init__(message)
        self.stage = stage


class CredentialLoadError(BootstrapError):
    """The TLS certificate or private key could not be read."""

    def __init__(self, path: str, cause: BaseException | str) -> None:
        super().__init__(
            f"Could not load TLS credential {path}: {cause}",
            stage="loading_credentials",
        )
        self.path = path
        self.cause = cause


class ListenerStartError(BootstrapError):
    """The TLS listener could not be started (bad PEM data, bind failure)."""

    def __init__(self, host: str, port: int, cause: BaseException | str) -> None:
        super().__init__(
            f"Could not start TLS listener on {host}:{port}: {cause}",
            stage="starting_listener",
        )
        self.host = host
        self.port = port
        self.cause = cause


class AllowListReadError(IpgateError):
    """The allow-list file could not be read at request time."""

    def __init__(self, path: str, cause: BaseException) -> None:
        super().__init__(f"Could not read allow-list {path}: {cause}")
        self.path = path
        self.cause = cause
