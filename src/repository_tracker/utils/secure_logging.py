"""
Secure logging utilities.

Provides logging filters and formatters that mask GitHub credentials
(tokens, bearer headers, App JWTs and private keys) before anything
reaches a handler.
"""

import logging
import re
from typing import Any, Optional


# Patterns for credentials that should be masked
SENSITIVE_PATTERNS = [
    # GitHub tokens
    (r"(gh[pousr]_)[A-Za-z0-9]{20,}", r"\1****"),
    (r"(github_pat_)[A-Za-z0-9_]+", r"\1****"),

    # Bearer / token authorization headers
    (r"(Bearer\s+)[A-Za-z0-9_\-\.]+", r"\1****"),
    (r"(token\s+)[A-Za-z0-9_\-\.]{20,}", r"\1****"),
    (r"(Authorization[\"']?\s*:\s*[\"']?)[^\"',}]+", r"\1****"),

    # App JWTs (header.payload.signature)
    (r"eyJ[A-Za-z0-9_\-]+\.[A-Za-z0-9_\-]+\.[A-Za-z0-9_\-]+", "****"),

    # Private keys
    (r"(-----BEGIN[^-]+PRIVATE KEY-----)[\s\S]+?(-----END[^-]+PRIVATE KEY-----)", r"\1****\2"),

    # key=value style secrets
    (r"((?:private_key|token|secret)[\"']?\s*[:=]\s*[\"']?)[A-Za-z0-9_\-\.+/=]{8,}", r"\1****"),
]

COMPILED_PATTERNS = [(re.compile(pattern, re.IGNORECASE), repl) for pattern, repl in SENSITIVE_PATTERNS]

SENSITIVE_KEYS = {
    "token",
    "authorization",
    "private_key",
    "private_key_base64",
    "privatekey",
    "privatekeybase64",
    "secret",
    "password",
}


def mask_sensitive_string(text: str) -> str:
    """
    Mask credentials in a string.

    Args:
        text: Text to sanitize

    Returns:
        Text with credentials masked
    """
    if not text:
        return text

    result = text
    for pattern, replacement in COMPILED_PATTERNS:
        result = pattern.sub(replacement, result)
    return result


def mask_dict_values(data: dict[str, Any], depth: int = 0, max_depth: int = 10) -> dict[str, Any]:
    """Recursively mask values stored under credential-like keys."""
    if depth >= max_depth:
        return data

    result = {}
    for key, value in data.items():
        if str(key).lower() in SENSITIVE_KEYS:
            result[key] = "****"
        elif isinstance(value, dict):
            result[key] = mask_dict_values(value, depth + 1, max_depth)
        elif isinstance(value, str):
            result[key] = mask_sensitive_string(value)
        else:
            result[key] = value
    return result


class SensitiveDataFilter(logging.Filter):
    """
    Logging filter that masks credentials in log messages.

    Attach to a logger or handler to mask tokens in both the message
    and its arguments.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = mask_sensitive_string(record.msg)

        if record.args:
            if isinstance(record.args, dict):
                record.args = mask_dict_values(record.args)
            elif isinstance(record.args, tuple):
                record.args = tuple(
                    mask_sensitive_string(arg) if isinstance(arg, str)
                    else mask_dict_values(arg) if isinstance(arg, dict)
                    else arg
                    for arg in record.args
                )

        return True


class SecureFormatter(logging.Formatter):
    """Formatter that masks credentials in the final formatted output."""

    def format(self, record: logging.LogRecord) -> str:
        return mask_sensitive_string(super().format(record))


def setup_secure_logging(
    level: int | str = logging.INFO,
    log_file: Optional[str] = None,
    format_string: Optional[str] = None,
) -> logging.Logger:
    """
    Set up secure logging for the sync job.

    Args:
        level: Logging level (name or number)
        log_file: Optional file to write logs to
        format_string: Custom format string

    Returns:
        Configured package logger
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logger = logging.getLogger("repository_tracker")
    logger.setLevel(level)

    # Repeated CLI invocations in one process must not stack handlers
    for handler in list(logger.handlers):
        if isinstance(handler.formatter, SecureFormatter):
            logger.removeHandler(handler)
            handler.close()

    formatter = SecureFormatter(
        format_string or "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    sensitive_filter = SensitiveDataFilter()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(sensitive_filter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        file_handler.addFilter(sensitive_filter)
        logger.addHandler(file_handler)

    return logger


def get_secure_logger(name: str) -> logging.Logger:
    """
    Get a logger with secure filtering enabled.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Logger with sensitive data filter
    """
    logger = logging.getLogger(name)
    if not any(isinstance(f, SensitiveDataFilter) for f in logger.filters):
        logger.addFilter(SensitiveDataFilter())
    return logger
