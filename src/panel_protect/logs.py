"""
Console logging for Panel Protect.

Modules log through ``logging.getLogger(__name__)``; this module renders
those records on a rich console with a severity-coded prefix:

    [INFO] Creating backup in /root/pterodactyl_backup_20250101_120000
    [SUCCESS] Backup finished
    [WARNING] Kernel.php not found, skipping middleware registration
    [ERROR] This command must be run as root!
"""

import logging

from rich.console import Console
from rich.markup import escape

SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")

_LEVEL_STYLES = {
    logging.DEBUG: ("DEBUG", "dim"),
    logging.INFO: ("INFO", "blue"),
    SUCCESS: ("SUCCESS", "green"),
    logging.WARNING: ("WARNING", "yellow"),
    logging.ERROR: ("ERROR", "red"),
    logging.CRITICAL: ("ERROR", "bold red"),
}


class SeverityPrefixHandler(logging.Handler):
    """Logging handler printing ``[LEVEL] message`` lines to a rich console."""

    def __init__(self, console: Console | None = None, level: int = logging.NOTSET):
        super().__init__(level)
        self.console = console or Console()

    def emit(self, record: logging.LogRecord) -> None:
        try:
            label, style = _LEVEL_STYLES.get(record.levelno, (record.levelname, "white"))
            message = escape(self.format(record))
            self.console.print(f"[{style}]\\[{label}][/{style}] {message}", highlight=False)
        except Exception:
            self.handleError(record)


def configure_logging(verbose: bool = False, console: Console | None = None) -> SeverityPrefixHandler:
    """
    Route ``panel_protect`` loggers to the console.

    Replaces a handler installed by an earlier call so repeated CLI
    invocations in one process do not print twice.
    """
    root = logging.getLogger("panel_protect")
    for existing in list(root.handlers):
        if isinstance(existing, SeverityPrefixHandler):
            root.removeHandler(existing)

    handler = SeverityPrefixHandler(console)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    return handler
