import argparse
import asyncio
import logging
import os
import signal
from typing import List, Optional, Sequence, Tuple

from . import APP_NAME, VERSION
from .config import Config
from .context import RunContext
from .environment import detect_environment
from .errors import SetupAbort
from .log import LOGGER_NAME, setup_logger
from .negotiator import CapabilityNegotiator
from .packages import get_package_manager
from .pipeline import InstallationPipeline
from .selection import prompt_selection
from .theme import print_error
from .ui import interface_for

logger = logging.getLogger(LOGGER_NAME)


def parse_args(argv: Optional[Sequence[str]] = None) -> Tuple[argparse.Namespace, List[str]]:
    parser = argparse.ArgumentParser(
        prog="de-setup",
        description=f"{APP_NAME} v{VERSION}: install a desktop environment and reboot.",
    )
    parser.add_argument(
        "-y",
        dest="non_interactive",
        action="store_true",
        help="accept defaults, skip prompts and install gum without asking",
    )
    parser.add_argument(
        "--log-file",
        default=Config.LOG_FILE,
        help="log file, truncated at the start of each run (default: %(default)s)",
    )
    return parser.parse_known_args(argv)


async def provision(config: Config, non_interactive: bool) -> None:
    """Run detection, UI negotiation, selection and installation in order."""
    environment = detect_environment(config.OS_RELEASE)
    package_manager = get_package_manager(environment.package_manager, config=config)
    context = RunContext(config, environment, package_manager, non_interactive)

    negotiator = CapabilityNegotiator(package_manager, context.non_interactive)
    context.freeze_ui(interface_for(await negotiator.negotiate()))
    loop = asyncio.get_running_loop()
    await loop.run_in_executor(None, context.ui.show_banner, environment)

    context.set_selection(await prompt_selection(context.ui, context.non_interactive))
    await InstallationPipeline(context).run()


async def main_async(config: Config, non_interactive: bool) -> int:
    try:
        await provision(config, non_interactive)
        return 0
    except SetupAbort as e:
        logger.critical(f"FATAL: {e}")
        return e.exit_code
    except Exception as e:
        logger.exception(f"FATAL: Unexpected error: {e}")
        return 1


def setup_signal_handlers(
    loop: asyncio.AbstractEventLoop, task: asyncio.Task, received: List[int]
) -> None:
    def handle(signum: int) -> None:
        received.append(signum)
        logger.error(f"Setup interrupted by {signal.Signals(signum).name}. Stopping.")
        task.cancel()

    for sig in (signal.SIGINT, signal.SIGTERM, signal.SIGHUP):
        loop.add_signal_handler(sig, handle, sig)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args, unknown = parse_args(argv)

    if os.geteuid() != 0:
        print_error("Please run this script as root.")
        return 1

    config = Config(LOG_FILE=args.log_file)
    try:
        setup_logger(config.LOG_FILE)
    except OSError as e:
        print_error(f"Could not open log file {config.LOG_FILE}: {e}")
        return 1
    for option in unknown:
        logger.warning(f"Ignoring unknown option: {option}")

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    task = loop.create_task(main_async(config, args.non_interactive))
    received: List[int] = []
    setup_signal_handlers(loop, task, received)
    try:
        return loop.run_until_complete(task)
    except asyncio.CancelledError:
        return 128 + (received[0] if received else signal.SIGINT)
    except KeyboardInterrupt:
        logger.error("Setup interrupted by user.")
        return 130
    finally:
        loop.close()
        asyncio.set_event_loop(None)
