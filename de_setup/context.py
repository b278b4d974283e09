from dataclasses import dataclass, field
from typing import Optional

from .config import Config
from .environment import Environment
from .package_sets import PackageSets, package_sets_for
from .packages import PackageManager
from .selection import Selection
from .ui import UserInterface


@dataclass
class RunContext:
    """State of one provisioning run, passed explicitly to each phase."""

    config: Config
    environment: Environment
    package_manager: PackageManager
    non_interactive: bool = False
    ui: Optional[UserInterface] = None
    selection: Optional[Selection] = None
    package_sets: PackageSets = field(init=False)

    def __post_init__(self):
        self.package_sets = package_sets_for(self.environment.package_manager)

    def freeze_ui(self, ui: UserInterface) -> None:
        if self.ui is not None:
            raise RuntimeError("UI backend is already fixed for this run")
        self.ui = ui
        self.package_manager.attach_ui(ui)

    def set_selection(self, selection: Selection) -> None:
        if self.selection is not None:
            raise RuntimeError("Selection is already fixed for this run")
        self.selection = selection
