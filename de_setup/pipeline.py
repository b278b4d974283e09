import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

from .command import command_exists, run_command_async
from .context import RunContext
from .errors import SetupAbort, SetupError
from .log import LOGGER_NAME
from .selection import DesktopEnvironment, DisplayManager
from .theme import print_section, print_status_report

logger = logging.getLogger(LOGGER_NAME)


class PipelineStep(str, Enum):
    REFRESH_INDEX = "refresh_index"
    INSTALL_COMMON = "install_common"
    INSTALL_VISUALS = "install_visuals"
    INSTALL_DESKTOP = "install_desktop"
    INSTALL_DISPLAY_MANAGER = "install_display_manager"
    ENABLE_DISPLAY_MANAGER = "enable_display_manager"
    CLEANUP = "cleanup"
    ANNOUNCE = "announce"
    SLEEP = "sleep"
    REBOOT = "reboot"


class InstallationPipeline:
    """
    Fixed-order installation run for a settled RunContext.

    Steps execute strictly one after another. A failed index refresh or
    required package install aborts the run with SetupAbort; enabling the
    display manager and cleanup only log warnings. Announce, sleep and
    reboot always run once installation has got that far.
    """

    def __init__(
        self,
        context: RunContext,
        exists: Callable[[str], bool] = command_exists,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        reboot: Optional[Callable[[], Awaitable[int]]] = None,
    ):
        self.context = context
        self.package_manager = context.package_manager
        self.exists = exists
        self.sleep = sleep
        self.reboot = reboot or self._reboot
        self.completed: List[PipelineStep] = []
        self.skipped: List[PipelineStep] = []
        self.status: Dict[str, Dict[str, str]] = {
            step.value: {"status": "pending", "message": ""} for step in PipelineStep
        }

    def _mark(self, step: PipelineStep, status: str, message: str = "") -> None:
        self.status[step.value] = {"status": status, "message": message}
        if status == "skipped":
            self.skipped.append(step)
        elif status != "failed":
            self.completed.append(step)

    async def _reboot(self) -> int:
        return await run_command_async(["reboot"], log_file=self.context.config.LOG_FILE)

    async def run(self) -> None:
        selection = self.context.selection
        if selection is None:
            raise SetupError("Installation started before a selection was made")
        desktop = selection.desktop_environment
        display_manager = selection.display_manager
        sets = self.context.package_sets

        print_section("Installation")
        logger.info(
            f"Starting installation (DE={desktop.value} DM={display_manager.value})"
        )

        await self.refresh_index()
        await self._install_required(PipelineStep.INSTALL_COMMON, sets.common)
        await self.install_visuals()

        if desktop is DesktopEnvironment.MINIMAL:
            logger.info("Minimal selected, skipping DE packages.")
            self._mark(PipelineStep.INSTALL_DESKTOP, "skipped", "Minimal selected")
        else:
            await self._install_required(
                PipelineStep.INSTALL_DESKTOP, sets.desktop(desktop)
            )

        if display_manager is DisplayManager.NONE:
            for step in (
                PipelineStep.INSTALL_DISPLAY_MANAGER,
                PipelineStep.ENABLE_DISPLAY_MANAGER,
            ):
                self._mark(step, "skipped", "No display manager selected")
        else:
            await self._install_required(
                PipelineStep.INSTALL_DISPLAY_MANAGER,
                sets.display_manager(display_manager),
            )
            await self.enable_display_manager(sets.services[display_manager])

        await self.cleanup()
        print_status_report(self.status)
        await self.finalize()

    async def refresh_index(self) -> None:
        result = await self.package_manager.refresh_index()
        if not result:
            message = f"Package index refresh failed after {result.attempts} attempt(s)"
            self._mark(PipelineStep.REFRESH_INDEX, "failed", message)
            raise SetupAbort(message)
        self._mark(
            PipelineStep.REFRESH_INDEX, "success", f"{result.attempts} attempt(s)"
        )

    async def _install_required(self, step: PipelineStep, packages: Sequence[str]) -> None:
        result = await self.package_manager.install(packages)
        if not result:
            self._mark(step, "failed", result.last_error or "")
            raise SetupAbort(
                f"Installing {' '.join(packages)} failed: {result.last_error}"
            )
        self._mark(step, "success", " ".join(packages))

    async def install_visuals(self) -> None:
        """
        Install missing banner tools, then any missing UI backend binary.

        The banner tools are required like any other package. A UI backend
        binary that cannot be installed only leaves a warning: the run is
        already using the backend it could get.
        """
        sets = self.context.package_sets
        tools = [p for p in sets.visuals if not self.exists(p)]
        ui_tools = [p for p in sets.ui_tools if not self.exists(p)]
        if not tools and not ui_tools:
            self._mark(PipelineStep.INSTALL_VISUALS, "skipped", "Already present")
            return

        result = await self.package_manager.install(tools)
        if not result:
            self._mark(PipelineStep.INSTALL_VISUALS, "failed", result.last_error or "")
            raise SetupAbort(f"Installing {' '.join(tools)} failed: {result.last_error}")

        result = await self.package_manager.install(ui_tools)
        if not result:
            logger.warning(
                f"Could not install {' '.join(ui_tools)}, continuing without it"
            )
            self._mark(PipelineStep.INSTALL_VISUALS, "warning", result.last_error or "")
            return
        self._mark(PipelineStep.INSTALL_VISUALS, "success", " ".join(tools + ui_tools))

    async def enable_display_manager(self, service: str) -> None:
        result = await self.package_manager.enable_service(service)
        if result:
            self._mark(PipelineStep.ENABLE_DISPLAY_MANAGER, "success", service)
        else:
            self._mark(
                PipelineStep.ENABLE_DISPLAY_MANAGER, "warning", result.last_error or ""
            )

    async def cleanup(self) -> None:
        logger.info("Cleaning up")
        result = await self.package_manager.cleanup()
        if result:
            self._mark(PipelineStep.CLEANUP, "success")
        else:
            self._mark(PipelineStep.CLEANUP, "warning", result.last_error or "")

    async def finalize(self) -> None:
        delay = self.context.config.REBOOT_DELAY
        ui = self.context.ui
        message = (
            f"Installation complete. The system will reboot automatically in {delay} seconds."
        )
        if ui is not None:
            ui.announce(message)
        logger.info(message)
        self._mark(PipelineStep.ANNOUNCE, "success")

        await self.sleep(delay)
        self._mark(PipelineStep.SLEEP, "success", f"{delay}s")

        logger.info("Rebooting now")
        returncode = await self.reboot()
        if returncode != 0:
            logger.error(f"Reboot command failed with exit status {returncode}")
            self._mark(PipelineStep.REBOOT, "failed", f"exit status {returncode}")
        else:
            self._mark(PipelineStep.REBOOT, "success")
