import logging
import subprocess
import time
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Type, Union

from rich.align import Align
from rich.markup import escape
from rich.prompt import Confirm

from . import APP_NAME
from .command import log_outcome, run_command_async, run_with_progress_async
from .environment import Environment
from .log import LOGGER_NAME
from .theme import NordColors, console, create_header

logger = logging.getLogger(LOGGER_NAME)


class UIBackend(str, Enum):
    GUM = "gum"
    FZF = "fzf"
    WHIPTAIL = "whiptail"
    NONE = "none"


# Richest first; NONE needs no executable
BACKEND_PREFERENCE = (UIBackend.GUM, UIBackend.FZF, UIBackend.WHIPTAIL)


def distro_line(environment: Environment) -> str:
    return f"[{environment.distro_name} | {environment.distro_version}]"


class UserInterface(ABC):
    """Prompts, banners, announcements and the progress indicator for one UI backend."""

    backend: UIBackend

    def __init__(
        self,
        run: Callable[..., subprocess.CompletedProcess] = subprocess.run,
        spawn: Callable[..., Awaitable[int]] = run_command_async,
    ):
        self.run = run
        self.spawn = spawn

    def _call(self, cmd: Sequence[str], **kwargs) -> Optional[subprocess.CompletedProcess]:
        try:
            return self.run(list(cmd), text=True, check=False, **kwargs)
        except OSError as e:
            logger.warning(f"{self.backend.value} unavailable: {e}")
            return None

    @abstractmethod
    def choose(self, prompt: str, options: Sequence[str]) -> Optional[str]:
        """Return the chosen label, or None when cancelled."""

    @abstractmethod
    def confirm(self, question: str, title: str = APP_NAME) -> bool:
        """Ask a yes/no question."""

    def show_banner(self, environment: Environment) -> None:
        console.print(f"[bold {NordColors.FROST_2}]=== {APP_NAME} ===[/]")
        console.print(
            f"[{NordColors.SNOW_STORM_1}]{escape(distro_line(environment))}[/]"
        )

    def announce(self, message: str) -> None:
        console.print(f"[bold {NordColors.YELLOW}]{escape(message)}[/]")

    async def run_operation(
        self,
        description: str,
        cmd: List[str],
        log_file: Optional[Union[str, Path]] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> int:
        """Run a long command behind this backend's progress indicator."""
        return await run_with_progress_async(
            description, cmd, log_file=log_file, env=env
        )


class GumInterface(UserInterface):
    backend = UIBackend.GUM

    async def run_operation(
        self,
        description: str,
        cmd: List[str],
        log_file: Optional[Union[str, Path]] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> int:
        # gum spin keeps the terminal; the inner shell appends output to the log
        if log_file is not None:
            cmd = ["sh", "-c", '"$@" >>"$0" 2>&1', str(log_file), *cmd]
        start = time.time()
        returncode = await self.spawn(
            ["gum", "spin", "--spinner", "dot", "--title", description, "--", *cmd],
            env=env,
        )
        log_outcome(description, returncode, time.time() - start)
        return returncode

    def choose(self, prompt: str, options: Sequence[str]) -> Optional[str]:
        result = self._call(
            ["gum", "choose", "--header", prompt, *options], stdout=subprocess.PIPE
        )
        if result is None or result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def confirm(self, question: str, title: str = APP_NAME) -> bool:
        result = self._call(["gum", "confirm", question])
        return result is not None and result.returncode == 0

    def show_banner(self, environment: Environment) -> None:
        self._call(
            [
                "gum", "style",
                "--align", "center",
                "--padding", "1",
                "--border", "normal",
                "--border-foreground", "212",
                "--foreground", "212",
                APP_NAME,
            ]
        )
        self._call(
            [
                "gum", "style", "--align", "center",
                distro_line(environment),
            ]
        )

    def announce(self, message: str) -> None:
        self._call(["gum", "style", "--align", "center", message])


class FzfInterface(UserInterface):
    backend = UIBackend.FZF

    def choose(self, prompt: str, options: Sequence[str]) -> Optional[str]:
        result = self._call(
            ["fzf", f"--prompt={prompt}: ", "--height=10", "--border"],
            input="\n".join(options),
            stdout=subprocess.PIPE,
        )
        if result is None or result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def confirm(self, question: str, title: str = APP_NAME) -> bool:
        return Confirm.ask(question, default=True, console=console)


class WhiptailInterface(UserInterface):
    backend = UIBackend.WHIPTAIL

    def choose(self, prompt: str, options: Sequence[str]) -> Optional[str]:
        menu = []
        for i, option in enumerate(options, start=1):
            menu += [str(i), option]
        # whiptail draws on stdout and writes the selected tag to stderr
        result = self._call(
            ["whiptail", "--title", prompt, "--menu", prompt, "15", "60", "6", *menu],
            stderr=subprocess.PIPE,
        )
        if result is None or result.returncode != 0:
            return None
        try:
            index = int(result.stderr.strip())
        except ValueError:
            return None
        if not 1 <= index <= len(options):
            return None
        return options[index - 1]

    def confirm(self, question: str, title: str = APP_NAME) -> bool:
        result = self._call(
            ["whiptail", "--title", title, "--yesno", question, "10", "60"]
        )
        return result is not None and result.returncode == 0

    def show_banner(self, environment: Environment) -> None:
        self._call(
            [
                "whiptail", "--title", APP_NAME, "--msgbox",
                f"Distribution: {environment.distro_name} {environment.distro_version}",
                "8", "50",
            ]
        )


class PlainInterface(UserInterface):
    """Console fallback that never blocks on a choice."""

    backend = UIBackend.NONE

    def choose(self, prompt: str, options: Sequence[str]) -> Optional[str]:
        return options[0] if options else None

    def confirm(self, question: str, title: str = APP_NAME) -> bool:
        return Confirm.ask(question, default=True, console=console)

    def show_banner(self, environment: Environment) -> None:
        console.print(
            create_header(
                "Desktop Setup",
                distro_line(environment),
            )
        )

    def announce(self, message: str) -> None:
        console.print(Align.center(f"[bold {NordColors.YELLOW}]{escape(message)}[/]"))


INTERFACES: Dict[UIBackend, Type[UserInterface]] = {
    UIBackend.GUM: GumInterface,
    UIBackend.FZF: FzfInterface,
    UIBackend.WHIPTAIL: WhiptailInterface,
    UIBackend.NONE: PlainInterface,
}


def interface_for(backend: UIBackend, **kwargs) -> UserInterface:
    return INTERFACES[backend](**kwargs)
