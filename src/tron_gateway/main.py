"""Application entry point for the gateway server."""

from __future__ import annotations

import json
import logging
import os

import uvicorn

from tron_gateway.config.settings import LogFormat, LoggingConfig, load_config

_TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class _JsonFormatter(logging.Formatter):
    """One JSON object per line, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def configure_logging(config: LoggingConfig) -> None:
    """Install a root handler using the configured level and format."""
    handler = logging.StreamHandler()
    if config.format is LogFormat.JSON:
        handler.setFormatter(_JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT))
    logging.basicConfig(level=config.level.upper(), handlers=[handler], force=True)


def main() -> None:
    """Start the gateway server."""
    config = load_config()
    configure_logging(config.logging)
    reload = os.getenv("TRONGW_RELOAD", "false").lower() in ("1", "true", "yes")
    uvicorn.run(
        "tron_gateway.api.app:create_app",
        factory=True,
        host=config.server.host,
        port=config.server.port,
        reload=reload,
        log_level=config.logging.level.lower(),
    )


if __name__ == "__main__":
    main()
