"""
Logging helpers for the Upload Binding Engine
==============================================

Colored, tagged log lines for reconciliation outcomes.
IMPORTANT: No emojis in console output (Windows encoding issues).
"""

import logging
from typing import Optional, Union

from colorama import Fore, Style, init

# Initialize colorama for Windows
init(autoreset=True)


class Outcome:
    """Outcome constants for a reconciled attachment slot"""
    KEEP = "KEEP"
    CREATE = "CREATE"
    REPLACE = "REPLACE"
    DELETE = "DELETE"
    FAILED = "FAILED"


OUTCOME_COLORS = {
    Outcome.KEEP: Fore.WHITE,
    Outcome.CREATE: Fore.GREEN,
    Outcome.REPLACE: Fore.CYAN,
    Outcome.DELETE: Fore.YELLOW,
    Outcome.FAILED: Fore.RED + Style.BRIGHT,
}

# Text-based tags, no emojis
OUTCOME_TAGS = {
    Outcome.KEEP: "[KEEP]",
    Outcome.CREATE: "[NEW ]",
    Outcome.REPLACE: "[REP ]",
    Outcome.DELETE: "[DEL ]",
    Outcome.FAILED: "[ERR ]",
}

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_USE_COLOR = True

# Third-party loggers that flood the console at INFO
_NOISY_LOGGERS = [
    "httpcore",
    "httpx",
    "multipart",
    "python_multipart",
    "uvicorn.access",
]


def configure_logging(level: Union[str, int] = logging.INFO, *, use_color: bool = True) -> None:
    """Install the process-wide logging configuration."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=[logging.StreamHandler()])
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    global _USE_COLOR
    _USE_COLOR = use_color


def format_outcome(index: int, outcome: str, detail: Optional[str] = None) -> str:
    """Render a single outcome line, colored unless disabled."""
    tag = OUTCOME_TAGS.get(outcome, "[????]")
    text = f"{tag} item {index}"
    if detail:
        text = f"{text}: {detail}"
    if not _USE_COLOR:
        return text
    color = OUTCOME_COLORS.get(outcome, Fore.WHITE)
    return f"{color}{text}{Style.RESET_ALL}"


def log_item_outcome(
    logger: logging.Logger,
    index: int,
    outcome: str,
    detail: Optional[str] = None,
) -> None:
    """Log what happened to one item; failures go out at WARNING."""
    level = logging.WARNING if outcome == Outcome.FAILED else logging.INFO
    if outcome == Outcome.KEEP:
        level = logging.DEBUG
    logger.log(level, format_outcome(index, outcome, detail))
