from __future__ import annotations
import logging
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP, localcontext

from sqlalchemy import String, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.types import TypeDecorator

from services.config.env import DatabaseConfig, get_database_config

logger = logging.getLogger(__name__)

Base = declarative_base()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ExactDecimal(TypeDecorator):
    """Fixed-point Decimal stored as text.

    SQLite keeps NUMERIC values as binary floats, which loses digits past about
    15 significant places; text round-trips every digit on every backend.
    """

    impl = String
    cache_ok = True

    def __init__(self, scale: int):
        super().__init__(64)
        self.scale = scale
        self._quantum = Decimal(1).scaleb(-scale)

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        d = value if isinstance(value, Decimal) else Decimal(str(value))
        with localcontext() as ctx:
            ctx.prec = 64
            return format(d.quantize(self._quantum, rounding=ROUND_HALF_UP), "f")

    def process_result_value(self, value, dialect):
        return None if value is None else Decimal(value)


def _is_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:") or url.startswith("sqlite:///:memory:?")


def make_engine(url: str | None = None, echo: bool | None = None) -> Engine:
    """Create an engine for `url` (defaults to DATABASE_URL).

    In-memory SQLite gets a single shared connection so every session sees
    the same database.
    """
    cfg: DatabaseConfig = get_database_config()
    url = url or cfg.url
    kwargs = {"echo": cfg.echo if echo is None else echo, "future": True}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if _is_memory_sqlite(url):
            kwargs["poolclass"] = StaticPool
    return create_engine(url, **kwargs)


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, expire_on_commit=False, future=True)


def init_db(engine: Engine) -> None:
    # models must be imported so their tables register on Base.metadata
    from services.storage import models  # noqa: F401

    Base.metadata.create_all(engine)
    logger.info("Ensured tables %s", ", ".join(sorted(Base.metadata.tables)))
