"""
Configuración de logging.
Salida a stdout con un formato único; cada línea lleva el request id de la
petición en curso ("-" fuera de una petición). Los servicios usan
log.exception ante fallos de escritura.
"""
import logging
import sys
from contextvars import ContextVar

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s [%(request_id)s]: %(message)s"

# Lo fija el middleware de app.main por cada petición
request_id_var: ContextVar[str] = ContextVar("request_id", default="-")


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = request_id_var.get()
        return True


def setup_logging(
    level: int | str = logging.INFO,
    format_string: str | None = None,
) -> None:
    logging.basicConfig(
        level=level,
        format=format_string or DEFAULT_FORMAT,
        stream=sys.stdout,
        force=True,
    )
    for handler in logging.getLogger().handlers:
        handler.addFilter(RequestIdFilter())
    # uvicorn trae sus propios handlers; solo se alinea el nivel
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).setLevel(level)
    logging.getLogger("ropastore").setLevel(level)
