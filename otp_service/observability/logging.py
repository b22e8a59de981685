from __future__ import annotations
import logging
import sys
import uuid
from pythonjsonlogger import jsonlogger
from fastapi import Request
from ..config import get_settings

JSON_FIELDS = "%(levelname)s %(name)s %(message)s %(asctime)s %(request_id)s %(extra)s"


def setup_logging(level: str | None = None, json: bool | None = None) -> None:
    """Route everything through one stdout handler; JSON lines unless running in dev."""
    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)

    use_json = get_settings().ENV != "dev" if json is None else json
    handler = logging.StreamHandler(sys.stdout)
    if use_json:
        handler.setFormatter(jsonlogger.JsonFormatter(JSON_FIELDS))
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)-7s %(name)s: %(message)s %(extra)s", defaults={"extra": ""}
        ))
    root.addHandler(handler)
    root.setLevel(level or get_settings().LOG_LEVEL)

    logging.getLogger("uvicorn.access").setLevel("WARNING")


def get_request_id(req: Request, header: str = "X-Request-ID") -> str:
    rid = req.headers.get(header)
    return rid if rid else uuid.uuid4().hex


def bind_record(record: logging.LogRecord, **extra):
    # attach arbitrary fields to a log record (safe for missing attrs)
    for k, v in extra.items():
        setattr(record, k, v or "")
    return record
