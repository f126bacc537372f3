import logging
import os
import re
import sys
from typing import Optional


class SensitiveDataFilter(logging.Filter):
    """Filter that masks session tokens and passphrases in log records."""

    PATTERNS = [
        (re.compile(r'(token["\']?\s*[:=]\s*["\']?)([^"\'}\s,&]+)', re.IGNORECASE), r'\1***MASKED***'),
        (re.compile(r'(passphrase["\']?\s*[:=]\s*["\']?)([^"\'}\s,]+)', re.IGNORECASE), r'\1***MASKED***'),
        (re.compile(r'(bearer\s+)([^\s,}\'\"]+)', re.IGNORECASE), r'\1***MASKED***'),
        (re.compile(r'(authorization["\']?\s*[:=]\s*["\']?)([^"\'}\s,]+)', re.IGNORECASE), r'\1***MASKED***'),
        (re.compile(r'(secret["\']?\s*[:=]\s*["\']?)([^"\'}\s,]+)', re.IGNORECASE), r'\1***MASKED***'),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = self._mask(record.msg)

        if record.args:
            if isinstance(record.args, dict):
                record.args = {k: self._mask_value(v) for k, v in record.args.items()}
            elif isinstance(record.args, tuple):
                record.args = tuple(self._mask_value(arg) for arg in record.args)

        return True

    def _mask(self, text: str) -> str:
        for pattern, replacement in self.PATTERNS:
            text = pattern.sub(replacement, text)
        return text

    def _mask_value(self, value):
        if isinstance(value, str):
            return self._mask(value)
        return value


def _build_formatter(request_id: Optional[str] = None) -> logging.Formatter:
    if request_id:
        fmt = f'%(asctime)s - %(name)s - %(levelname)s - [{request_id}] - %(message)s'
    else:
        fmt = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    return logging.Formatter(fmt, datefmt='%Y-%m-%d %H:%M:%S')


def setup_logging(
    component_name: str,
    log_level: Optional[str] = None,
    request_id: Optional[str] = None
) -> logging.Logger:
    """
    Set up logging for a top-level component.

    Args:
        component_name: Logger namespace to configure (e.g. 'contentstore', 'chunkstore')
        log_level: DEBUG, INFO, WARNING or ERROR. Defaults to the LOG_LEVEL env var or INFO
        request_id: Optional request id to stamp on every line

    Returns:
        Configured logger instance
    """
    if log_level is None:
        log_level = os.getenv('LOG_LEVEL', 'INFO').upper()

    level = getattr(logging, log_level, logging.INFO)

    logger = logging.getLogger(component_name)
    logger.setLevel(level)

    if logger.handlers:
        return logger

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(_build_formatter(request_id))
    handler.addFilter(SensitiveDataFilter())

    logger.addHandler(handler)
    logger.propagate = False

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger with the given name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
