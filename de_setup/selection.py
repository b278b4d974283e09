import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, TypeVar

from .log import LOGGER_NAME
from .ui import UIBackend, UserInterface

logger = logging.getLogger(LOGGER_NAME)


class DesktopEnvironment(str, Enum):
    KDE = "kde"
    GNOME = "gnome"
    XFCE = "xfce"
    MINIMAL = "minimal"


class DisplayManager(str, Enum):
    SDDM = "sddm"
    GDM = "gdm"
    NONE = "none"


@dataclass(frozen=True)
class Selection:
    desktop_environment: DesktopEnvironment
    display_manager: DisplayManager


DEFAULT_SELECTION = Selection(DesktopEnvironment.KDE, DisplayManager.SDDM)

# Menu label -> value, in menu order
DESKTOP_OPTIONS: Dict[str, DesktopEnvironment] = {
    "KDE Plasma": DesktopEnvironment.KDE,
    "GNOME": DesktopEnvironment.GNOME,
    "XFCE": DesktopEnvironment.XFCE,
    "Minimal": DesktopEnvironment.MINIMAL,
}
DISPLAY_MANAGER_OPTIONS: Dict[str, DisplayManager] = {
    "sddm": DisplayManager.SDDM,
    "gdm": DisplayManager.GDM,
    "none": DisplayManager.NONE,
}
# Accepted but never offered
DISPLAY_MANAGER_ALIASES: Dict[str, DisplayManager] = {"gdm3": DisplayManager.GDM}

T = TypeVar("T")


def _map_choice(choice: Optional[str], options: Dict[str, T], default: T) -> T:
    if choice is None:
        return default
    return options.get(choice.strip(), default)


def choose_selection(ui: UserInterface, non_interactive: bool = False) -> Selection:
    """
    Pick the desktop environment and display manager for this run.

    Defaults are used without prompting in non-interactive mode or when no
    UI backend is available; a cancelled or unrecognised answer falls back
    to the default for that field.
    """
    if non_interactive:
        logger.info("Non-interactive mode: using defaults")
        return DEFAULT_SELECTION
    if ui.backend is UIBackend.NONE:
        logger.info("No TUI tools found, running non-interactive defaults")
        return DEFAULT_SELECTION

    desktop = _map_choice(
        ui.choose("Choose a Desktop Environment", list(DESKTOP_OPTIONS)),
        DESKTOP_OPTIONS,
        DEFAULT_SELECTION.desktop_environment,
    )
    display_manager = _map_choice(
        ui.choose("Choose a Display Manager", list(DISPLAY_MANAGER_OPTIONS)),
        {**DISPLAY_MANAGER_OPTIONS, **DISPLAY_MANAGER_ALIASES},
        DEFAULT_SELECTION.display_manager,
    )

    selection = Selection(desktop, display_manager)
    logger.info(f"User chose DE={desktop.value} DM={display_manager.value}")
    return selection


async def prompt_selection(ui: UserInterface, non_interactive: bool = False) -> Selection:
    """choose_selection on a worker thread, so the event loop keeps serving signals."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, lambda: choose_selection(ui, non_interactive))
