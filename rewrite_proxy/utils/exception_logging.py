"""
Exception formatting and logging helpers used at the proxy boundary.

Both helpers are written so that they never raise, even for exception objects
whose ``__str__`` is broken.
"""

import logging


def _safe_str(obj) -> str:
    try:
        return str(obj)
    except Exception:
        try:
            return repr(obj)
        except Exception:
            return f"<{type(obj).__name__} object (string conversion failed)>"


def _safe_get_exceptions(exception_group) -> list:
    try:
        return list(exception_group.exceptions)
    except Exception:
        return []


def format_exception_message(exception: BaseException) -> str:
    """
    Human readable message for an exception.

    Transport errors sometimes carry an empty message (``httpx.ReadTimeout('')``),
    in which case the exception type name is used. Exception groups list their
    sub-exceptions.

    Args:
        exception: The exception to format

    Returns:
        A non-empty string describing the exception
    """
    if exception is None:
        return "None"
    try:
        message = _safe_str(exception) or type(exception).__name__
        sub_exceptions = _safe_get_exceptions(exception) if hasattr(
            exception, "exceptions"
        ) else []
        if sub_exceptions:
            details = "; ".join(
                f"{type(sub).__name__}: {_safe_str(sub)}" for sub in sub_exceptions
            )
            return f"{message} (Sub-exceptions: {details})"
        return message
    except Exception:
        return "<exception (formatting failed)>"


def log_exception_with_details(
    logger: logging.Logger,
    prefix: str,
    exception: BaseException,
    level: int = logging.ERROR,
) -> None:
    """
    Log an exception with its traceback, one extra line per sub-exception.

    Args:
        logger: The logger instance to use
        prefix: Prefix for the log message (e.g. "[Proxy] GET /r/test")
        exception: The exception to log
        level: The logging level to use (default: ERROR)
    """
    try:
        message = format_exception_message(exception)
        logger.log(
            level,
            f"{prefix} {type(exception).__name__}: {message}",
            exc_info=exception if exception is not None else False,
        )
        for i, sub_exc in enumerate(
            _safe_get_exceptions(exception) if hasattr(exception, "exceptions") else []
        ):
            logger.log(
                level,
                f"{prefix} Sub-exception {i+1}: {type(sub_exc).__name__}: {_safe_str(sub_exc)}",
                exc_info=sub_exc,
            )
    except Exception:
        try:
            logger.log(logging.ERROR, f"{prefix} Exception (logging failed)")
        except Exception:
            # nothing left to report to
            pass
