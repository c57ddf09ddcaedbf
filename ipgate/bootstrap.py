"""Bootstrap sequencing for ipgate.

Startup is a strict state machine:

    IDLE → LOADING_CREDENTIALS → STARTING_LISTENER → INSTALLING_GATE
         → INSTALLING_ROUTES → READY

FAILED is absorbing and reachable from every non-terminal state. On failure
the listening socket, if already bound, is closed before the error
propagates, so a half-initialised TLS server is never left reachable.

The gate is installed before the routes, and nothing is served until READY.
"""

from __future__ import annotations

import enum
from typing import Optional

from ipgate.allowlist.checker import AllowListChecker
from ipgate.config import Config
from ipgate.errors import BootstrapError
from ipgate.listener import TLSListener
from ipgate.main import create_app, install_access_gate, install_routes
from ipgate.tls.credentials import load_identity
from ipgate.utils.logger import StageTimer, get_logger

logger = get_logger(__name__)


class BootstrapState(str, enum.Enum):
    IDLE = "idle"
    LOADING_CREDENTIALS = "loading_credentials"
    STARTING_LISTENER = "starting_listener"
    INSTALLING_GATE = "installing_gate"
    INSTALLING_ROUTES = "installing_routes"
    READY = "ready"
    FAILED = "failed"


class BootstrapSequencer:
    """Runs the startup stages once, in order, for one Config.

    Usage:
        listener = await BootstrapSequencer(config).run()
        await listener.serve()
    """

    def __init__(self, config: Config) -> None:
        self.config = config
        self._state = BootstrapState.IDLE
        self.history: list[BootstrapState] = [BootstrapState.IDLE]

    @property
    def state(self) -> BootstrapState:
        return self._state

    def _enter(self, state: BootstrapState) -> None:
        self._state = state
        self.history.append(state)
        logger.debug("Bootstrap state", state=state.value)

    async def run(self) -> TLSListener:
        """Execute every stage and return a bound, fully-installed listener.

        Raises:
            CredentialLoadError: Certificate or key could not be read.
            ListenerStartError: TLS context or socket could not be created.
            BootstrapError: Any other failure while installing handlers.
            RuntimeError: The sequencer has already run.
        """
        if self._state is not BootstrapState.IDLE:
            raise RuntimeError(f"Bootstrap already ran (state={self._state.value})")

        listener: Optional[TLSListener] = None
        try:
            self._enter(BootstrapState.LOADING_CREDENTIALS)
            with StageTimer(self._state.value, logger):
                identity = await load_identity(
                    self.config.tls.cert_path, self.config.tls.key_path
                )

            self._enter(BootstrapState.STARTING_LISTENER)
            with StageTimer(self._state.value, logger):
                application = create_app()
                listener = TLSListener(application, self.config.listener, identity)
                listener.bind()

            self._enter(BootstrapState.INSTALLING_GATE)
            with StageTimer(self._state.value, logger):
                install_access_gate(
                    application, AllowListChecker(self.config.access.whitelist_path)
                )

            self._enter(BootstrapState.INSTALLING_ROUTES)
            with StageTimer(self._state.value, logger):
                install_routes(application)
        except BaseException as exc:
            failed_stage = self._state
            self._enter(BootstrapState.FAILED)
            if listener is not None:
                listener.close()
            if isinstance(exc, BootstrapError) or not isinstance(exc, Exception):
                raise
            raise BootstrapError(
                f"Bootstrap failed while {failed_stage.value}: {exc}",
                stage=failed_stage.value,
            ) from exc

        self._enter(BootstrapState.READY)
        return listener
