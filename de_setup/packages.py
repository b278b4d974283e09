import asyncio
import functools
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional, Sequence

from .command import command_exists, run_with_progress_async
from .config import Config
from .environment import PackageManagerKind
from .log import LOGGER_NAME

logger = logging.getLogger(LOGGER_NAME)

# (description, command, env=...) -> exit status
CommandRunner = Callable[..., Awaitable[int]]
Sleeper = Callable[[float], Awaitable[None]]


@dataclass
class OperationResult:
    succeeded: bool
    attempts: int = 1
    last_error: Optional[str] = None

    def __bool__(self) -> bool:
        return self.succeeded


def _failure(description: str, returncode: int) -> str:
    return f"{description} exited with status {returncode}"


class PackageManager(ABC):
    """
    One system package manager behind a uniform async interface.

    Only refresh_index retries, and only where the backend needs it. install
    reports failures to the caller; enable_service and cleanup are
    best-effort and merely log a warning.
    """

    kind: PackageManagerKind

    def __init__(
        self,
        config: Optional[Config] = None,
        runner: Optional[CommandRunner] = None,
        sleep: Sleeper = asyncio.sleep,
        exists: Callable[[str], bool] = command_exists,
    ):
        self.config = config or Config()
        self._injected_runner = runner is not None
        self.runner = runner or functools.partial(
            run_with_progress_async, log_file=self.config.LOG_FILE
        )
        self.sleep = sleep
        self.exists = exists

    def attach_ui(self, ui) -> None:
        """Show later commands through the frozen UI's progress indicator."""
        if self._injected_runner:
            return
        self.runner = functools.partial(ui.run_operation, log_file=self.config.LOG_FILE)

    async def _run(
        self,
        description: str,
        cmd: Sequence[str],
        env: Optional[Dict[str, str]] = None,
    ) -> OperationResult:
        returncode = await self.runner(description, list(cmd), env=env)
        if returncode == 0:
            return OperationResult(True)
        return OperationResult(False, last_error=_failure(description, returncode))

    @abstractmethod
    async def refresh_index(self) -> OperationResult:
        """Bring the package index up to date."""

    @abstractmethod
    async def _install(self, packages: Sequence[str]) -> OperationResult:
        """Install a non-empty package list without prompting."""

    @abstractmethod
    async def cleanup(self) -> OperationResult:
        """Remove unused packages and clear the package cache."""

    @abstractmethod
    async def acquire(self, package: str) -> OperationResult:
        """Install a single package, trying every fallback this backend knows."""

    async def install(self, packages: Sequence[str]) -> OperationResult:
        if not packages:
            return OperationResult(True, attempts=0)
        logger.info(f"Install {self.kind.value}: {' '.join(packages)}")
        return await self._install(packages)

    async def enable_service(self, name: str) -> OperationResult:
        result = await self._run(
            f"Enabling {name}",
            [self.config.SERVICE_MANAGER, "enable", "--now", name],
        )
        if not result:
            logger.warning(f"Enable {name} failed: {result.last_error}")
        return result


class AptPackageManager(PackageManager):
    kind = PackageManagerKind.APT

    async def refresh_index(self) -> OperationResult:
        max_attempts = self.config.REFRESH_MAX_ATTEMPTS
        last_error = None
        for attempt in range(1, max_attempts + 1):
            result = await self._run("Updating package index", ["apt-get", "update"])
            if result:
                return OperationResult(True, attempts=attempt)
            last_error = result.last_error
            logger.warning(f"apt update failed, attempt {attempt}")
            if attempt < max_attempts:
                await self.sleep(self.config.REFRESH_BACKOFF)

        logger.error(f"apt update failed after {max_attempts} attempts")
        return OperationResult(False, attempts=max_attempts, last_error=last_error)

    async def _install(self, packages: Sequence[str]) -> OperationResult:
        return await self._run(
            f"Installing: {' '.join(packages)}",
            ["apt-get", "install", "-y", *packages],
            env={"DEBIAN_FRONTEND": "noninteractive"},
        )

    async def cleanup(self) -> OperationResult:
        removed = await self._run("Autoremove", ["apt-get", "autoremove", "-y"])
        cleaned = await self._run("Autoclean", ["apt-get", "autoclean", "-y"])
        errors = [r.last_error for r in (removed, cleaned) if not r]
        if errors:
            logger.warning(f"Cleanup incomplete: {'; '.join(errors)}")
            return OperationResult(False, attempts=2, last_error=errors[-1])
        return OperationResult(True, attempts=2)

    async def acquire(self, package: str) -> OperationResult:
        logger.info(f"Attempting to install {package} via package manager: apt")
        attempts = 1
        refreshed = await self.refresh_index()
        if refreshed:
            result = await self.install([package])
            if result:
                return OperationResult(True, attempts=attempts)
            last_error = result.last_error
        else:
            last_error = refreshed.last_error
        logger.warning(f"apt install {package} failed; trying snap or a release binary")

        if self.exists("snap"):
            attempts += 1
            logger.info(f"Attempting snap install {package}")
            result = await self._run(
                f"Installing {package} (snap)", ["snap", "install", package]
            )
            if result:
                return OperationResult(True, attempts=attempts)
            last_error = result.last_error

        # TODO: fetch the release tarball from GitHub when neither apt nor snap can provide it
        logger.warning(
            f"Downloading a {package} release binary is not supported; giving up"
        )
        return OperationResult(False, attempts=attempts, last_error=last_error)


class PacmanPackageManager(PackageManager):
    kind = PackageManagerKind.PACMAN

    async def refresh_index(self) -> OperationResult:
        # Combined with a full upgrade and attempted once
        logger.info("pacman -Syu")
        return await self._run(
            "Refreshing packages", ["pacman", "-Syu", "--noconfirm"]
        )

    async def _install(self, packages: Sequence[str]) -> OperationResult:
        return await self._run(
            f"Installing: {' '.join(packages)}",
            ["pacman", "-S", "--noconfirm", "--noprogressbar", *packages],
        )

    async def cleanup(self) -> OperationResult:
        result = await self._run(
            "Cleaning pacman cache", ["pacman", "-Sc", "--noconfirm"]
        )
        if not result:
            logger.warning(f"Cleanup incomplete: {result.last_error}")
        return result

    async def acquire(self, package: str) -> OperationResult:
        logger.info(f"Attempting to install {package} via package manager: pacman")
        result = await self.install([package])
        if not result:
            logger.warning(
                f"pacman install {package} failed; AUR helpers are not tried automatically"
            )
        return result


PACKAGE_MANAGERS = {
    PackageManagerKind.APT: AptPackageManager,
    PackageManagerKind.PACMAN: PacmanPackageManager,
}


def get_package_manager(kind: PackageManagerKind, **kwargs) -> PackageManager:
    try:
        return PACKAGE_MANAGERS[kind](**kwargs)
    except KeyError:
        raise ValueError(f"Unsupported package manager: {kind}") from None
