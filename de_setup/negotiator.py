import asyncio
import logging
from enum import Enum
from typing import Callable, Dict, List, Optional

from .command import command_exists
from .log import LOGGER_NAME
from .packages import PackageManager
from .ui import BACKEND_PREFERENCE, UIBackend, UserInterface, interface_for

logger = logging.getLogger(LOGGER_NAME)

UPGRADE_QUESTION = (
    "{package} was not found. Install {package} for a nicer interface?\n"
    "(The installation runs automatically and its output goes to the log)"
)


class NegotiationState(Enum):
    PROBING = "probing"
    OFFERING_UPGRADE = "offering_upgrade"
    INSTALLING = "installing"
    RESOLVED = "resolved"


def probe_backends(exists: Callable[[str], bool] = command_exists) -> Dict[UIBackend, bool]:
    """Report which UI backends are installed, in preference order."""
    return {backend: exists(backend.value) for backend in BACKEND_PREFERENCE}


def richest_backend(available: Dict[UIBackend, bool]) -> UIBackend:
    for backend in BACKEND_PREFERENCE:
        if available.get(backend):
            return backend
    return UIBackend.NONE


class CapabilityNegotiator:
    """
    Settle on the UI backend for the rest of the run.

    When gum is missing it is installed automatically in non-interactive
    mode, or after asking the operator otherwise. Nothing here aborts the
    run: the worst outcome is UIBackend.NONE.
    """

    def __init__(
        self,
        package_manager: PackageManager,
        non_interactive: bool = False,
        exists: Callable[[str], bool] = command_exists,
        interfaces: Callable[[UIBackend], UserInterface] = interface_for,
    ):
        self.package_manager = package_manager
        self.non_interactive = non_interactive
        self.exists = exists
        self.interfaces = interfaces
        self.upgrade_package = package_manager.config.UPGRADE_PACKAGE
        self.state = NegotiationState.PROBING
        self.history: List[NegotiationState] = [self.state]
        self.backend: Optional[UIBackend] = None

    def _enter(self, state: NegotiationState) -> None:
        self.state = state
        self.history.append(state)

    async def negotiate(self) -> UIBackend:
        if self.backend is not None:
            return self.backend

        available = probe_backends(self.exists)
        found = " ".join(f"{b.value}:{str(ok).lower()}" for b, ok in available.items())
        logger.info(f"Initial UI tool: {richest_backend(available).value} ({found})")

        if available[UIBackend.GUM]:
            logger.info(f"{self.upgrade_package} detected")
        else:
            self._enter(NegotiationState.OFFERING_UPGRADE)
            if await self._accepts_upgrade(available):
                self._enter(NegotiationState.INSTALLING)
                await self._install_upgrade()

        return self._resolve()

    async def _accepts_upgrade(self, available: Dict[UIBackend, bool]) -> bool:
        package = self.upgrade_package
        if self.non_interactive:
            logger.info(f"Non-interactive: attempting to install {package} automatically")
            return True

        prompt_backend = UIBackend.WHIPTAIL if available[UIBackend.WHIPTAIL] else UIBackend.NONE
        ui = self.interfaces(prompt_backend)
        # Prompts block; keep the loop free for signal handlers meanwhile
        loop = asyncio.get_running_loop()
        accepted = await loop.run_in_executor(
            None,
            lambda: ui.confirm(
                UPGRADE_QUESTION.format(package=package), title=f"Install {package}?"
            ),
        )
        if accepted:
            return True
        logger.info(f"User declined {package} installation; fallback will be used")
        return False

    async def _install_upgrade(self) -> None:
        result = await self.package_manager.acquire(self.upgrade_package)
        if result:
            logger.info(f"{self.upgrade_package} installed and ready to use")
        else:
            logger.warning(
                f"Installing {self.upgrade_package} failed; falling back to other UI tools"
            )

    def _resolve(self) -> UIBackend:
        self._enter(NegotiationState.RESOLVED)
        self.backend = richest_backend(probe_backends(self.exists))
        if self.backend is UIBackend.NONE:
            logger.info("No TUI tool available; running with plain console output")
        else:
            logger.info(f"Using UI tool: {self.backend.value}")
        return self.backend
