from __future__ import annotations
import logging
import os
from dataclasses import dataclass

@dataclass(frozen=True)
class DatabaseConfig:
    url: str = "sqlite:///./roi_calculator.db"
    echo: bool = False


def get_database_config() -> DatabaseConfig:
    url = os.getenv("DATABASE_URL", DatabaseConfig.url)
    echo = os.getenv("DATABASE_ECHO", "0").lower() in ("1", "true", "yes")
    return DatabaseConfig(url=url, echo=echo)


@dataclass(frozen=True)
class RateLimitConfig:
    max_requests: int = 5
    window_sec: float = 60.0


def get_rate_limit_config() -> RateLimitConfig:
    n = int(os.getenv("RATE_LIMIT_N", str(RateLimitConfig.max_requests)))
    w = float(os.getenv("RATE_LIMIT_WINDOW_SEC", str(RateLimitConfig.window_sec)))
    return RateLimitConfig(max_requests=n, window_sec=w)


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    fmt: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def get_logging_config() -> LoggingConfig:
    return LoggingConfig(level=os.getenv("LOG_LEVEL", LoggingConfig.level).upper())


def configure_logging(config: LoggingConfig | None = None) -> None:
    cfg = config or get_logging_config()
    logging.basicConfig(level=getattr(logging, cfg.level, logging.INFO), format=cfg.fmt)
