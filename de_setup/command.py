import asyncio
import logging
import os
import shutil
import time
from pathlib import Path
from typing import Dict, List, Optional, Union

from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from .log import LOGGER_NAME
from .theme import NordColors, console

logger = logging.getLogger(LOGGER_NAME)

# Exit status reported for an executable that cannot be found, as a shell would
COMMAND_NOT_FOUND = 127


def command_exists(command: str) -> bool:
    """Return True if the named executable is on PATH."""
    return shutil.which(command) is not None


async def _wait(proc: asyncio.subprocess.Process) -> int:
    """Wait for proc; a cancelled waiter terminates and reaps the child first."""
    try:
        return await proc.wait()
    except asyncio.CancelledError:
        if proc.returncode is None:
            logger.debug(f"Terminating process {proc.pid}")
            try:
                proc.terminate()
            except ProcessLookupError:
                pass
            try:
                await asyncio.wait_for(proc.wait(), timeout=5)
            except asyncio.TimeoutError:
                proc.kill()
                await proc.wait()
        raise


async def run_command_async(
    cmd: List[str],
    log_file: Optional[Union[str, Path]] = None,
    env: Optional[Dict[str, str]] = None,
) -> int:
    """
    Run a command and return its exit status.

    stdout and stderr are appended to log_file when one is given, otherwise
    they go to the terminal. A non-zero status is returned, never raised.
    """
    logger.debug(f"Executing: {' '.join(cmd)}")
    full_env = {**os.environ, **env} if env else None

    if log_file is None:
        try:
            proc = await asyncio.create_subprocess_exec(*cmd, env=full_env)
        except FileNotFoundError:
            logger.debug(f"Command not found: {cmd[0]}")
            return COMMAND_NOT_FOUND
        return await _wait(proc)

    with open(log_file, "ab") as output:
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=output,
                stderr=asyncio.subprocess.STDOUT,
                env=full_env,
            )
        except FileNotFoundError:
            logger.debug(f"Command not found: {cmd[0]}")
            return COMMAND_NOT_FOUND
        return await _wait(proc)


async def run_with_progress_async(
    description: str,
    cmd: List[str],
    log_file: Optional[Union[str, Path]] = None,
    env: Optional[Dict[str, str]] = None,
    refresh_interval: float = 0.1,
) -> int:
    """
    Run a command while a spinner is rendered until it exits.

    The command runs as its own task; this coroutine only refreshes the
    display while that task is pending and then hands back its exit status
    unchanged.

    Args:
        description: Text shown next to the spinner
        cmd: Command as a list of strings
        log_file: File that receives the command output
        env: Extra environment variables for the command
        refresh_interval: Seconds between display refreshes

    Returns:
        The exit status of the command
    """
    start = time.time()
    task = asyncio.ensure_future(run_command_async(cmd, log_file=log_file, env=env))

    with Progress(
        SpinnerColumn(style=f"bold {NordColors.FROST_1}"),
        TextColumn(f"[bold {NordColors.FROST_2}]{{task.description}}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
        auto_refresh=False,
    ) as progress:
        progress.add_task(description, total=None)
        try:
            while not task.done():
                progress.refresh()
                await asyncio.wait({task}, timeout=refresh_interval)
        except asyncio.CancelledError:
            task.cancel()
            await asyncio.wait({task})
            logger.warning(f"{description} interrupted")
            raise

    returncode = task.result()
    log_outcome(description, returncode, time.time() - start)
    return returncode


def log_outcome(description: str, returncode: int, elapsed: float) -> None:
    if returncode == 0:
        logger.info(f"✓ {description} completed in {elapsed:.2f}s")
    else:
        logger.error(
            f"✗ {description} failed in {elapsed:.2f}s (exit status {returncode})"
        )
