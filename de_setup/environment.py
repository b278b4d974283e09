import logging
import shlex
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Union

from .command import command_exists
from .errors import SetupAbort
from .log import LOGGER_NAME

logger = logging.getLogger(LOGGER_NAME)

UNKNOWN = "unknown"


class PackageManagerKind(str, Enum):
    APT = "apt"
    PACMAN = "pacman"


# Probe order: the first executable found decides the kind
PACKAGE_MANAGER_PROBES = (
    ("apt", PackageManagerKind.APT),
    ("pacman", PackageManagerKind.PACMAN),
)


@dataclass(frozen=True)
class Environment:
    distro_id: str
    distro_name: str
    distro_version: str
    package_manager: PackageManagerKind

    def describe(self) -> str:
        return f"{self.distro_name} ({self.distro_id}) {self.distro_version}"


def parse_os_release(text: str) -> Dict[str, str]:
    """Parse the KEY=VALUE lines of an os-release file, unquoting values."""
    fields: Dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        try:
            parts = shlex.split(value)
        except ValueError:
            parts = [value.strip("\"'")]
        fields[key.strip()] = parts[0] if parts else ""
    return fields


def read_os_release(path: Union[str, Path]) -> Dict[str, str]:
    path = Path(path)
    try:
        # Undecodable bytes must not hide the ASCII keys we need
        return parse_os_release(path.read_text(encoding="utf-8", errors="replace"))
    except OSError as e:
        logger.debug(f"Could not read {path}: {e}")
        return {}


def detect_environment(
    os_release: Union[str, Path] = "/etc/os-release",
    exists: Callable[[str], bool] = command_exists,
) -> Environment:
    """
    Identify the distribution and its package manager.

    Raises:
        SetupAbort: if neither apt nor pacman is available
    """
    fields = read_os_release(os_release)

    for executable, kind in PACKAGE_MANAGER_PROBES:
        if exists(executable):
            package_manager = kind
            break
    else:
        raise SetupAbort("Package manager not supported (apt or pacman required).")

    environment = Environment(
        distro_id=fields.get("ID") or UNKNOWN,
        distro_name=fields.get("NAME") or UNKNOWN,
        distro_version=fields.get("VERSION_ID") or UNKNOWN,
        package_manager=package_manager,
    )
    logger.info(
        f"Detected: {environment.describe()} | PM: {environment.package_manager.value}"
    )
    return environment
