import logging
import sys
import json
import re
from typing import Any, Dict, Optional
from logging.handlers import QueueHandler, QueueListener
from queue import Queue
from storefront.config.app_config import app_config
from storefront.common.constants import request_id_ctx, visitor_ctx

ENV = getattr(app_config, "ENV", "dev").lower()

SENSITIVE_PATTERNS = [
    r"password", r"secret", r"token", r"authorization", r"cookie",
    r"auth_token", r"refresh_token", r"session_id",
    r"card_number", r"cvv", r"upi_id",
]

# extra fields that identify a visitor; shortened outside dev
MASKED_FIELDS = ["user_id", "session_id", "device_id", "tab_id", "email"]

_RESERVED_ATTRS = {
    "name", "msg", "args", "levelname", "levelno", "pathname", "filename",
    "module", "exc_info", "exc_text", "stack_info", "lineno", "funcName",
    "created", "msecs", "relativeCreated", "thread", "threadName", "processName",
    "process", "taskName",
}


def sanitize_message_text(msg: str) -> str:
    """Sanitize sensitive patterns inside a text message (best-effort)."""
    out = msg
    for p in SENSITIVE_PATTERNS:
        # "token=abc" or '"token": "abc"'
        out = re.sub(rf'("{p}"\s*:\s*")[^"]+(")', rf'\1[REDACTED]\2', out, flags=re.IGNORECASE)
        out = re.sub(rf'({p}\s*[=:]\s*)[\w\-\./@]+', rf'\1[REDACTED]', out, flags=re.IGNORECASE)
    return out


def mask_value(value: Any) -> str:
    val = str(value)
    if len(val) > 12:
        return val[:6] + "..." + val[-3:]
    return val[:4] + "..."


_SECRET_KEY = re.compile("|".join(SENSITIVE_PATTERNS), re.IGNORECASE)


def redact_extra(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Secrets dropped, visitor identifiers shortened."""
    out: Dict[str, Any] = {}
    for key, value in fields.items():
        if value in (None, ""):
            out[key] = value
        elif key in MASKED_FIELDS:
            out[key] = mask_value(value)
        elif _SECRET_KEY.search(key):
            out[key] = "[REDACTED]"
        else:
            out[key] = value
    return out


class JSONFormatter(logging.Formatter):
    """Structured JSON formatter for staging/prod"""
    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "env": ENV,
            "service": getattr(app_config, "SERVICE_NAME", "bloomcart-storefront"),
        }

        # runs on the listener thread: request_id / device_id arrive as extras captured by ContextLogger
        extra_fields = {
            k: v for k, v in record.__dict__.items()
            if k not in _RESERVED_ATTRS and not k.startswith("_")
        }

        if ENV != "dev":
            extra_fields = redact_extra(extra_fields)
        log_data.update(extra_fields)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if ENV != "dev":
            log_data["message"] = sanitize_message_text(log_data.get("message", ""))

        return json.dumps(log_data, default=str)


class SecurityFilter(logging.Filter):
    """Redact sensitive info in non-dev logs"""

    def filter(self, record: logging.LogRecord) -> bool:
        if ENV != "dev":
            record.msg = sanitize_message_text(record.getMessage())
            record.args = ()
        return True


# non-blocking queue based logging, set up once at app startup
_queue_listener: Optional[QueueListener] = None


def setup_logging():

    global _queue_listener

    if ENV in ("prod", "staging"):
        log_level = logging.INFO
    else:
        log_level = logging.DEBUG

    # lifespan may run more than once in one process (tests)
    if _queue_listener is not None:
        _queue_listener.stop()
        _queue_listener = None

    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)

    q: Queue = Queue(-1)
    qh = QueueHandler(q)

    console_handler = logging.StreamHandler(sys.stdout)
    if ENV != "dev":
        console_handler.setFormatter(JSONFormatter())
        console_handler.addFilter(SecurityFilter())
    else:
        console_handler.setFormatter(logging.Formatter(
            "%(asctime)s [%(levelname)8s] %(name)s:%(funcName)s:%(lineno)d | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        ))

    root.setLevel(log_level)
    root.addHandler(qh)

    _queue_listener = QueueListener(q, console_handler, respect_handler_level=True)
    _queue_listener.start()

    # httpx logs every outgoing request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING if ENV != "dev" else logging.INFO)

    return logging.getLogger("bloomcart.app")


def shutdown_logging():
    global _queue_listener
    if _queue_listener is not None:
        _queue_listener.stop()
        _queue_listener = None


class ContextLogger:
    def __init__(self, name: str):
        self._logger = logging.getLogger(name)

    def _context(self) -> Dict[str, Any]:
        ctx = {}
        rid = request_id_ctx.get()
        if rid:
            ctx["request_id"] = rid
        device_id = visitor_ctx.get()
        if device_id:
            ctx["device_id"] = device_id
        return ctx

    def _log(self, level: int, msg: str, *args, **kwargs):
        extra = kwargs.pop("extra", None) or {}
        kwargs["extra"] = {**self._context(), **extra}
        kwargs.setdefault("stacklevel", 3)
        self._logger.log(level, msg, *args, **kwargs)

    def debug(self, msg: str, *args, **kwargs):
        self._log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs):
        self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        self._log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        self._log(logging.ERROR, msg, *args, **kwargs)

    def exception(self, msg: str, *args, **kwargs):
        kwargs.setdefault("exc_info", True)
        self._log(logging.ERROR, msg, *args, **kwargs)


def get_logger(name: str = "bloomcart.app") -> ContextLogger:
    return ContextLogger(name)
