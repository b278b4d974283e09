"""
Shared test fixtures and fakes.

External commands never run: package managers get a RecordingRunner,
sleeps are recorded instead of awaited, and UI backends are scripted.
"""

import logging
import threading
from pathlib import Path
from typing import Callable, Iterable, List, Optional

import pytest

from de_setup import APP_NAME
from de_setup.config import Config
from de_setup.environment import Environment, PackageManagerKind
from de_setup.log import LOGGER_NAME
from de_setup.ui import UIBackend, UserInterface


class RecordingRunner:
    """Stands in for run_with_progress_async and records every command."""

    def __init__(
        self,
        returncodes: Iterable[int] = (),
        default: int = 0,
        status_for: Optional[Callable[[List[str]], Optional[int]]] = None,
    ):
        self.returncodes = list(returncodes)
        self.default = default
        self.status_for = status_for
        self.calls = []

    async def __call__(self, description, cmd, env=None):
        self.calls.append((description, list(cmd), env))
        if self.status_for is not None:
            status = self.status_for(list(cmd))
            if status is not None:
                return status
        if self.returncodes:
            return self.returncodes.pop(0)
        return self.default

    @property
    def commands(self) -> List[List[str]]:
        return [cmd for _, cmd, _ in self.calls]


class RecordingSpawn:
    """Stands in for run_command_async inside a UI backend."""

    def __init__(self, returncode=0):
        self.returncode = returncode
        self.calls = []

    async def __call__(self, cmd, log_file=None, env=None):
        self.calls.append((list(cmd), log_file, env))
        return self.returncode


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


class ScriptedInterface(UserInterface):
    """UI backend that answers from a script and records what it was asked."""

    def __init__(self, backend=UIBackend.GUM, answers=(), confirms=()):
        super().__init__(run=None)
        self.backend = backend
        self.answers = list(answers)
        self.confirms = list(confirms)
        self.prompts = []
        self.questions = []
        self.banners = []
        self.announcements = []
        # thread that answered each prompt or question
        self.threads = []

    def choose(self, prompt, options):
        self.prompts.append((prompt, list(options)))
        self.threads.append(threading.get_ident())
        return self.answers.pop(0) if self.answers else None

    def confirm(self, question, title=APP_NAME):
        self.questions.append(question)
        self.threads.append(threading.get_ident())
        return self.confirms.pop(0) if self.confirms else False

    def show_banner(self, environment):
        self.banners.append(environment)

    def announce(self, message):
        self.announcements.append(message)


@pytest.fixture(autouse=True)
def reset_logger():
    """setup_logger() disables propagation; restore it so caplog keeps working."""
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def config(tmp_path: Path) -> Config:
    return Config(LOG_FILE=str(tmp_path / "de-setup.log"))


@pytest.fixture
def apt_environment() -> Environment:
    return Environment("debian", "Debian GNU/Linux", "12", PackageManagerKind.APT)


@pytest.fixture
def pacman_environment() -> Environment:
    return Environment("arch", "Arch Linux", "unknown", PackageManagerKind.PACMAN)


@pytest.fixture
def runner() -> RecordingRunner:
    return RecordingRunner()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()
