"""Database engine and session factory."""

from __future__ import annotations

import logging
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker

from aicli.storage.models import Base

logger = logging.getLogger(__name__)


class Database:
    """Owns the engine; hands out sessions that keep objects usable after commit."""

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        parsed = make_url(url)
        if parsed.get_backend_name() == "sqlite" and parsed.database not in (None, "", ":memory:"):
            Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)

        self.engine = create_engine(url, echo=echo)
        self.session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)

    def create_all(self) -> None:
        """Create missing tables."""
        logger.debug(f"Ensuring schema on {self.engine.url!r}")
        Base.metadata.create_all(self.engine)

    def dispose(self) -> None:
        self.engine.dispose()
