import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

from dust_proxy.config.settings import settings


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        msg = record.getMessage()
        if settings.log_redact_content:
            msg = (msg or "")[:64]
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "name": record.name,
            "msg": msg,
        }
        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            payload.update(extra)
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def resolve_level(name: str) -> int:
    """把配置中的级别名转换为 logging 常量，未知名称回退到 INFO。"""
    level = logging.getLevelName((name or "").upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logger() -> logging.Logger:
    level = resolve_level(settings.log_level)
    logger = logging.getLogger("dust_proxy")
    logger.setLevel(level)
    if logger.handlers:
        return logger
    log_dir = Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    fh = logging.FileHandler(log_dir / "proxy.log", encoding="utf-8")
    fh.setLevel(level)
    fh.setFormatter(JsonFormatter())
    logger.addHandler(fh)
    if settings.log_to_console:
        sh = logging.StreamHandler(sys.stderr)
        sh.setLevel(level)
        sh.setFormatter(JsonFormatter())
        logger.addHandler(sh)
    return logger


logger = setup_logger()
