import shutil
from typing import Dict, Optional

import pyfiglet
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.style import Style
from rich.table import Table
from rich.text import Text
from rich.theme import Theme


# ----------------------------------------------------------------
# Nord Color Theme & Console Setup
# ----------------------------------------------------------------
class NordColors:
    POLAR_NIGHT_1: str = "#2E3440"
    POLAR_NIGHT_3: str = "#434C5E"
    SNOW_STORM_1: str = "#D8DEE9"
    SNOW_STORM_2: str = "#E5E9F0"
    FROST_1: str = "#8FBCBB"
    FROST_2: str = "#88C0D0"
    FROST_3: str = "#81A1C1"
    FROST_4: str = "#5E81AC"
    RED: str = "#BF616A"
    YELLOW: str = "#EBCB8B"
    GREEN: str = "#A3BE8C"
    PURPLE: str = "#B48EAD"


nord_theme = Theme(
    {
        "banner": f"bold {NordColors.FROST_2}",
        "header": f"bold {NordColors.FROST_2}",
        "info": NordColors.GREEN,
        "warning": NordColors.YELLOW,
        "error": NordColors.RED,
        "debug": NordColors.POLAR_NIGHT_3,
        "success": NordColors.GREEN,
    }
)

console = Console(theme=nord_theme)


# ----------------------------------------------------------------
# UI Helper Functions
# ----------------------------------------------------------------
def create_header(title: str, subtitle: Optional[str] = None) -> Panel:
    """
    Generate an ASCII art header with gradient styling using Pyfiglet.

    Args:
        title: The title text to render as ASCII art
        subtitle: Optional line shown centered below the panel border

    Returns:
        A Rich Panel containing the styled header
    """
    term_width = shutil.get_terminal_size().columns
    adjusted_width = min(term_width - 4, 80)

    fonts = ["slant", "small", "standard", "mini"]
    ascii_art = ""
    for font in fonts:
        try:
            fig = pyfiglet.Figlet(font=font, width=adjusted_width)
            ascii_art = fig.renderText(title)
            if ascii_art.strip():
                break
        except pyfiglet.FigletError:
            continue

    ascii_lines = [line for line in ascii_art.splitlines() if line.strip()]
    colors = [
        NordColors.FROST_1,
        NordColors.FROST_2,
        NordColors.FROST_3,
        NordColors.FROST_4,
    ]

    content = Text()
    for i, line in enumerate(ascii_lines):
        content.append(line, style=Style(color=colors[i % len(colors)], bold=True))
        if i < len(ascii_lines) - 1:
            content.append("\n")

    return Panel(
        content,
        border_style=Style(color=NordColors.FROST_1),
        padding=(1, 2),
        subtitle=(
            Text(subtitle, style=f"bold {NordColors.SNOW_STORM_1}")
            if subtitle
            else None
        ),
        subtitle_align="center",
    )


def print_section(title: str) -> None:
    console.print()
    console.print(f"[bold {NordColors.FROST_3}]{title}[/]")
    console.print(f"[{NordColors.FROST_3}]{'─' * len(title)}[/]")


def print_message(
    text: str, style: str = NordColors.FROST_2, prefix: str = "•"
) -> None:
    console.print(f"[{style}]{prefix} {text}[/{style}]")


def print_error(message: str) -> None:
    print_message(message, NordColors.RED, "✗")


def print_status_report(status: Dict[str, Dict[str, str]]) -> None:
    """Display a summary table of every pipeline step and how it ended."""
    table = Table(
        title="Desktop Setup Status Report",
        title_style=f"bold {NordColors.FROST_1}",
        border_style=NordColors.FROST_3,
        box=box.ROUNDED,
        show_lines=True,
    )
    table.add_column("Step", style=f"bold {NordColors.FROST_2}")
    table.add_column("Status", style="bold")
    table.add_column("Message")

    for key, data in status.items():
        status_style = {
            "success": NordColors.GREEN,
            "failed": NordColors.RED,
            "warning": NordColors.YELLOW,
            "skipped": NordColors.PURPLE,
            "pending": NordColors.FROST_3,
        }.get(data["status"].lower(), NordColors.FROST_2)
        table.add_row(
            key.replace("_", " ").title(),
            f"[{status_style}]{data['status'].upper()}[/{status_style}]",
            data["message"],
        )

    console.print(Panel(table, border_style=NordColors.FROST_1))
