import contextvars
import json
import logging
import logging.config
import os
from contextlib import contextmanager
from datetime import datetime, timezone

import yaml

from .config import LOG_FORMAT, LOG_LEVEL

# Context variables stamped onto every log line
request_id_var = contextvars.ContextVar('request_id', default=None)
job_id_var = contextvars.ContextVar('job_id', default=None)
tenant_id_var = contextvars.ContextVar('tenant_id', default=None)

_RESERVED = {
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname', 'filename', 'module',
    'lineno', 'funcName', 'created', 'msecs', 'relativeCreated', 'thread', 'threadName',
    'processName', 'process', 'exc_info', 'exc_text', 'stack_info', 'taskName',
    'request_id', 'job_id', 'tenant_id', 'component',
}


@contextmanager
def job_context(job_id: str, tenant_id: str):
    """Tag log lines emitted while a job runs."""
    job_token = job_id_var.set(job_id)
    tenant_token = tenant_id_var.set(tenant_id)
    try:
        yield
    finally:
        job_id_var.reset(job_token)
        tenant_id_var.reset(tenant_token)


class JsonFormatter(logging.Formatter):
    """JSON formatter with structured fields"""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "request_id": getattr(record, 'request_id', None) or request_id_var.get(),
            "job_id": getattr(record, 'job_id', None) or job_id_var.get(),
            "tenant_id": getattr(record, 'tenant_id', None) or tenant_id_var.get(),
            "component": getattr(record, 'component', 'api'),
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        # Add extra fields
        for key, value in record.__dict__.items():
            if key not in _RESERVED and key not in log_entry:
                log_entry[key] = value

        return json.dumps(log_entry, default=str)


def default_config(log_format: str, log_level: str) -> dict:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {"()": JsonFormatter},
            "text": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S"
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": log_level,
                "formatter": log_format,
                "stream": "ext://sys.stdout"
            }
        },
        "loggers": {
            "optimizer": {"level": log_level, "handlers": [], "propagate": True},
            "uvicorn": {"level": log_level, "handlers": [], "propagate": True},
            "uvicorn.access": {"level": log_level, "handlers": [], "propagate": True},
        },
        "root": {
            "level": log_level,
            "handlers": ["console"]
        }
    }


def setup_logging(config_path: str = "LOGGING.yaml", log_format: str = LOG_FORMAT,
                  log_level: str = LOG_LEVEL) -> dict:
    """Setup logging configuration from YAML file or environment"""

    config = None
    if os.path.exists(config_path):
        try:
            with open(config_path, 'r') as f:
                config = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logging.getLogger(__name__).warning("Could not load %s: %s", config_path, e)

    if not config:
        config = default_config("text" if log_format == "text" else "json", log_level)

    logging.config.dictConfig(config)
    return config
