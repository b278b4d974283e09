from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Tuple

from .environment import PackageManagerKind
from .selection import DesktopEnvironment, DisplayManager


@dataclass(frozen=True)
class PackageSets:
    """Package names for one package manager kind."""

    common: Tuple[str, ...]
    desktops: Mapping[DesktopEnvironment, Tuple[str, ...]]
    display_managers: Mapping[DisplayManager, Tuple[str, ...]]
    visuals: Tuple[str, ...]
    # UI backend binaries; installed best-effort since the UI can degrade
    ui_tools: Tuple[str, ...] = ()
    # Service name to enable for each display manager
    services: Mapping[DisplayManager, str] = field(
        default_factory=lambda: MappingProxyType(
            {DisplayManager.SDDM: "sddm", DisplayManager.GDM: "gdm"}
        )
    )

    def desktop(self, desktop: DesktopEnvironment) -> Tuple[str, ...]:
        return self.desktops.get(desktop, ())

    def display_manager(self, display_manager: DisplayManager) -> Tuple[str, ...]:
        return self.display_managers.get(display_manager, ())


PACKAGE_SETS: Mapping[PackageManagerKind, PackageSets] = MappingProxyType(
    {
        PackageManagerKind.APT: PackageSets(
            common=("curl",),
            desktops=MappingProxyType(
                {
                    DesktopEnvironment.KDE: ("task-kde-desktop",),
                    DesktopEnvironment.GNOME: ("task-gnome-desktop",),
                    DesktopEnvironment.XFCE: ("task-xfce-desktop",),
                }
            ),
            display_managers=MappingProxyType(
                {
                    DisplayManager.SDDM: ("sddm",),
                    DisplayManager.GDM: ("gdm3",),
                }
            ),
            visuals=("figlet", "lolcat"),
            ui_tools=("gum",),
        ),
        PackageManagerKind.PACMAN: PackageSets(
            common=("curl",),
            desktops=MappingProxyType(
                {
                    DesktopEnvironment.KDE: ("plasma", "sddm", "plasma-wayland-session"),
                    DesktopEnvironment.GNOME: ("gnome", "gnome-extra"),
                    DesktopEnvironment.XFCE: ("xfce4", "xfce4-goodies"),
                }
            ),
            display_managers=MappingProxyType(
                {
                    DisplayManager.SDDM: ("sddm",),
                    DisplayManager.GDM: ("gdm",),
                }
            ),
            visuals=("figlet",),
        ),
    }
)


def package_sets_for(kind: PackageManagerKind) -> PackageSets:
    return PACKAGE_SETS[kind]
