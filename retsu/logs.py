"""Coloured, timestamped console logging."""

from datetime import datetime

_RESET = "\033[0m"
_RED = "\033[31m"
_BLUE = "\033[34m"
_YELLOW = "\033[33m"


def _format(message, args):
    if not args:
        return message
    try:
        return message % args
    except (TypeError, ValueError):
        return " ".join([message, *map(str, args)])


def _emit(colour, level, message, args):
    stamp = datetime.now().astimezone().isoformat(sep=" ")
    print(f"{colour}[{stamp}] [{level}] {_format(message, args)}\n{_RESET}", flush=True)


def log_err(message, *args):
    """Print an error line in red."""
    _emit(_RED, "ERROR", message, args)


def log_info(message, *args):
    """Print an informational line in blue."""
    _emit(_BLUE, "INFO", message, args)


def log_warning(message, *args):
    """Print a warning line in yellow."""
    _emit(_YELLOW, "WARNING", message, args)