import json
import logging
import re
import tempfile
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

# Context variables for correlation
command_var: ContextVar[Optional[str]] = ContextVar('command', default=None)
backend_var: ContextVar[Optional[str]] = ContextVar('backend', default=None)

DEFAULT_LOG_FILE = str(Path(tempfile.gettempdir()) / 'spotfloat-plugin.log')


class SecretMasker:
    """Masks sensitive information in log messages."""

    def __init__(self):
        """Initialize secret masker with patterns."""
        self.patterns = [
            # API tokens and keys
            r'(?i)(token|key|secret|password|auth)[\s]*[:=][\s]*["\']?([a-zA-Z0-9\-_\.]{10,})["\']?',
            # Spotify access and refresh tokens
            r'(?i)(access_token|refresh_token)[\s]*[:=][\s]*["\']?([a-zA-Z0-9\-_\.]{20,})["\']?',
            # Client secrets
            r'(?i)(client_secret)[\s]*[:=][\s]*["\']?([a-zA-Z0-9\-_\.]{20,})["\']?',
            # Bearer credentials sent to the relay
            r'(?i)(bearer)[\s]+["\']?([a-zA-Z0-9\-_\.]{10,})["\']?',
        ]

        self.compiled_patterns = [re.compile(pattern) for pattern in self.patterns]

    def mask_secrets(self, text: str) -> str:
        """Mask sensitive information in text."""
        if not text:
            return text

        masked_text = text

        for pattern in self.compiled_patterns:
            def replace_match(match):
                prefix = match.group(1)
                secret = match.group(2)
                # Keep first 4 and last 4 characters, mask the rest
                if len(secret) > 8:
                    masked_secret = secret[:4] + '*' * (len(secret) - 8) + secret[-4:]
                else:
                    masked_secret = '*' * len(secret)
                return f"{prefix}: {masked_secret}"

            masked_text = pattern.sub(replace_match, masked_text)

        return masked_text

    def mask_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Mask sensitive information in dictionary."""
        if not data:
            return data

        masked_data = {}

        for key, value in data.items():
            if isinstance(value, str):
                masked_data[key] = self.mask_secrets(value)
            elif isinstance(value, dict):
                masked_data[key] = self.mask_dict(value)
            elif isinstance(value, list):
                masked_data[key] = [self.mask_dict(item) if isinstance(item, dict)
                                    else self.mask_secrets(item) if isinstance(item, str)
                                    else item for item in value]
            else:
                masked_data[key] = value

        return masked_data


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def __init__(self):
        """Initialize formatter."""
        super().__init__()
        self.masker = SecretMasker()

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            'ts': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': self.masker.mask_secrets(record.getMessage()),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        command = command_var.get()
        backend = backend_var.get()
        if command:
            log_entry['command'] = command
        if backend:
            log_entry['backend'] = backend

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        if getattr(record, 'fields', None):
            log_entry['fields'] = self.masker.mask_dict(record.fields)

        return json.dumps(log_entry, ensure_ascii=False, default=str)


class CorrelationContext:
    """Context manager binding the running command and backend to log records."""

    def __init__(self, command: Optional[str] = None, backend: Optional[str] = None):
        self.command = command
        self.backend = backend
        self._tokens = []

    def __enter__(self):
        if self.command is not None:
            self._tokens.append((command_var, command_var.set(self.command)))
        if self.backend is not None:
            self._tokens.append((backend_var, backend_var.set(self.backend)))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        while self._tokens:
            var, token = self._tokens.pop()
            var.reset(token)


def setup_logging(level: str = 'INFO',
                  log_file: Optional[str] = None,
                  console: bool = True) -> logging.Logger:
    """Setup structured logging on the 'spotfloat' logger.

    Inside the editor the remote plugin talks msgpack over stdio, so it logs to
    a file only (console=False).
    """
    logger = logging.getLogger('spotfloat')
    logger.setLevel(getattr(logging, level.upper()))
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = StructuredFormatter()

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if not logger.handlers:
        logger.addHandler(logging.NullHandler())

    return logger


def get_logger(name: str = 'spotfloat') -> logging.Logger:
    """Get logger with structured formatting."""
    return logging.getLogger(name)


def log_with_fields(logger: logging.Logger, level: str, message: str,
                    fields: Optional[Dict[str, Any]] = None, **kwargs) -> None:
    """Log message with additional fields."""
    merged = dict(fields or {})
    merged.update(kwargs)
    logger.log(getattr(logging, level.upper()), message,
               extra={'fields': merged} if merged else None, stacklevel=2)


def log_error(logger: logging.Logger, message: str, error: Exception, **kwargs) -> None:
    """Log error with exception details."""
    logger.error(message, exc_info=error, stacklevel=2, extra={'fields': {
        'error_type': type(error).__name__,
        'error_message': str(error),
        **kwargs
    }})
