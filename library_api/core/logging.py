# library_api/core/logging.py
"""
Logs estructurados de la API de préstamos.

Cada evento de negocio (book_registered, loan_borrowed, loan_returned,
business_rule_violation, request_completed, ...) sale como una línea JSON
con sus campos `extra` y el request_id / user_id del request en curso.
"""
import json
import logging
from logging import Logger
from typing import Any, Dict, Optional
from contextvars import ContextVar

from .config import settings


# request_id lo pone el middleware; user_id lo pone get_current_user
request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
user_id_ctx: ContextVar[Optional[int]] = ContextVar("user_id", default=None)


# Atributos propios de LogRecord: no son campos del evento
_RESERVED_ATTRS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "taskName",
    "message",
}


class JsonFormatter(logging.Formatter):
    """
    Un evento de préstamo o inventario por línea.

    loan_borrowed lleva loan_id, book_id y due_date; loan_returned agrega
    fine_amount; los errores de negocio llevan kind y error_message.
    """

    def format(self, record: logging.LogRecord) -> str:
        event: Dict[str, Any] = {
            "timestamp": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S%z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        fields = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS and key not in event
        }
        event.update(fields)

        # Eventos que no pasan request_id / user_id los toman del contexto
        for key, ctx in (("request_id", request_id_ctx), ("user_id", user_id_ctx)):
            value = ctx.get()
            if value is not None and key not in event:
                event[key] = value

        if record.exc_info:
            event["exc_info"] = self.formatException(record.exc_info)

        # due_date es datetime y status un Enum
        return json.dumps(event, ensure_ascii=False, default=str)


def configure_logging() -> None:
    """
    Manda todos los loggers de la API (api.*, services.*) a stdout en JSON.

    Se llama al importar main y otra vez en el lifespan; reemplaza los
    handlers previos salvo los de captura de pytest.
    """
    root = logging.getLogger()
    root.setLevel(settings.LOG_LEVEL.upper())

    for h in list(root.handlers):
        if type(h).__module__.startswith("_pytest"):
            continue
        root.removeHandler(h)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root.addHandler(handler)


def get_logger(name: str) -> Logger:
    """Loggers con nombre por capa: "api.loans", "services.inventory"."""
    return logging.getLogger(name)
