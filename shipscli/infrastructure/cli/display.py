import json
import logging
from typing import Any, Optional

from rich.box import HEAVY, SIMPLE
from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from shipscli.domain.interfaces.user_interface import UserInterface

logger = logging.getLogger(__name__)


class ConsoleDisplay(UserInterface):
    """Concrete implementation of UserInterface using the rich library.

    Results are printed to stdout as JSON; errors, warnings and info panels
    go to stderr so the JSON stays pipeable.
    """

    def __init__(self, console: Optional[Console] = None, err_console: Optional[Console] = None):
        """Initializes the rich consoles."""
        self._console = console or Console()
        self._err_console = err_console or Console(stderr=True)

    @property
    def console(self) -> Console:
        """Get the Rich console instance for direct operations."""
        return self._console

    def display_result(self, result: Any, **kwargs: Any) -> None:
        """Prints a JSON-serializable result.

        Args:
            result: Dicts, lists or scalars.
            **kwargs: `indent` overrides the default of 2.
        """
        self.console.print_json(json.dumps(result, default=str), indent=kwargs.get("indent", 2))

    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message in a distinct style.

        Args:
            error_message: The error message to display.
        """
        panel = Panel(
            Text(error_message, style="white"),
            title="[bold red]Error[/bold red]",
            border_style="red",
            box=HEAVY,
            padding=(0, 1)
        )
        self._err_console.print(panel)

    def display_info(self, info_message: str, **kwargs: Any) -> None:
        panel = Panel(
            Text(info_message, style="white"),
            title="[bold blue]Info[/bold blue]",
            border_style="blue",
            box=SIMPLE,
            padding=(0, 1)
        )
        self._err_console.print(panel)

    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        """Displays a warning message with enhanced styling.

        Args:
            warning_message: The warning message to display.
        """
        logger.debug(f"Display warning: {warning_message}")
        panel = Panel(
            Text(warning_message, style="white"),
            title="[bold yellow]Warning[/bold yellow]",
            border_style="yellow",
            box=HEAVY,
            padding=(0, 1)
        )
        self._err_console.print(panel)
