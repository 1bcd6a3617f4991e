"""
Exception logging helpers that never raise, so a failing log call cannot turn
an upstream failure into a different error.
"""

import logging


def _safe_str(obj) -> str:
    """
    Convert an object to string, falling back to repr and then to the type name.
    """
    try:
        return str(obj)
    except Exception:
        try:
            return repr(obj)
        except Exception:
            return f"<{type(obj).__name__} object (string conversion failed)>"


def _safe_get_exceptions(exception) -> list:
    try:
        return list(exception.exceptions)
    except Exception:
        return []


def format_exception_message(exception: Exception) -> str:
    """
    Format an exception as ``Type: message``, including the members of an
    exception group.

    Args:
        exception: The exception to format

    Returns:
        A string describing the exception; never raises
    """
    if exception is None:
        return "None"
    try:
        main = f"{type(exception).__name__}: {_safe_str(exception)}"
        sub_exceptions = _safe_get_exceptions(exception) if hasattr(exception, "exceptions") else []
        if not sub_exceptions:
            return main
        parts = [f"{type(sub).__name__}: {_safe_str(sub)}" for sub in sub_exceptions]
        return f"{main} (Sub-exceptions: {'; '.join(parts)})"
    except Exception:
        return "<exception (formatting failed)>"


def log_exception_with_details(
    logger: logging.Logger,
    prefix: str,
    exception: Exception,
    level: int = logging.ERROR,
    exc_info: bool = True,
) -> None:
    """
    Log an exception with a prefix such as ``[Proxy]`` or ``[Edge]``.

    Args:
        logger: The logger instance to use
        prefix: Prefix for the log message
        exception: The exception to log
        level: The logging level to use (default: ERROR)
        exc_info: Attach the traceback to the record
    """
    safe_prefix = _safe_str(prefix) if prefix is not None else ""
    message = f"{safe_prefix} {format_exception_message(exception)}".strip()
    try:
        logger.log(
            level,
            message,
            exc_info=exception if (exc_info and exception is not None) else False,
        )
    except Exception:
        try:
            logger.log(level, f"{safe_prefix} Exception (logging failed)")
        except Exception:
            pass
