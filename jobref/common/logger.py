"""
Logging setup for the referral service.

Background runs interleave in one process, so every line a run writes is
prefixed with its job key and pipeline stage:

    2024-05-01 12:00:00 [INFO] jobref.services.referral_service: [user:7:job:abc] [extract] Extracted: ...
"""

import json
import logging
import os
import sys
from typing import Optional

# Verbose logging for every run logger; DEBUG_MODE=true
_DEBUG_RUNS = os.getenv("DEBUG_MODE", "false").lower() == "true"


class RunLogger(logging.LoggerAdapter):
    """
    Logger adapter that tags messages with a job key and a stage.

    The wrapped stdlib logger stays reachable as `.logger`, which is what
    log_on_exception and safe_execute expect.
    """

    def __init__(self, logger: logging.Logger, job_id: Optional[str] = None, stage: Optional[str] = None):
        super().__init__(logger, {"job_id": job_id, "stage": stage})
        self.job_id = job_id
        self.stage = stage

    def process(self, msg, kwargs):
        tags = []
        if self.job_id:
            tags.append(f"[{self.job_id[:48]}]")
        if self.stage:
            tags.append(f"[{self.stage}]")
        kwargs.setdefault("extra", {}).update(self.extra)
        if tags:
            return f"{' '.join(tags)} {msg}", kwargs
        return msg, kwargs


class JsonFormatter(logging.Formatter):
    """One JSON object per line, for log aggregators."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": self.formatTime(record),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        for field in ("job_id", "stage"):
            value = getattr(record, field, None)
            if value:
                payload[field] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def setup_logging(level: str = "INFO", format: str = "simple") -> None:
    """
    Configure the root logger once at process start.

    Args:
        level: DEBUG, INFO, WARNING or ERROR
        format: "simple" for humans, "json" for production
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    if format == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(log_level)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(
    name: str,
    job_id: Optional[str] = None,
    stage: Optional[str] = None,
    debug_mode: Optional[bool] = None,
) -> RunLogger:
    """
    Logger for one stage of one background run.

    Args:
        name: Logger name (usually __name__)
        job_id: Job key the run belongs to
        stage: Pipeline stage ("fetch", "extract", "generate", "run")
        debug_mode: Force DEBUG level; defaults to DEBUG_MODE
    """
    logger = logging.getLogger(name)
    if debug_mode if debug_mode is not None else _DEBUG_RUNS:
        logger.setLevel(logging.DEBUG)
    return RunLogger(logger, job_id=job_id, stage=stage)
