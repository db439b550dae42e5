# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module contains the process-wide on-disk caches."""

import logging
import os
from datetime import datetime, timedelta, timezone

import sqlalchemy.exc
from sqlalchemy import delete, func, select

from ortolan.config.defaults import defaults
from ortolan.database.database_manager import DatabaseManager
from ortolan.database.table_definitions import CacheEntryMixin, HttpCacheEntry, MetadataCacheEntry

logger: logging.Logger = logging.getLogger(__name__)


class DiskCache:
    """A key-value cache stored in one table of a sqlite database.

    Entries older than ``max_age`` are treated as absent. When the table grows beyond ``max_entries`` the
    oldest entries are evicted. Concurrent writers of the same key overwrite each other.
    """

    def __init__(
        self,
        db_manager: DatabaseManager,
        table: type[CacheEntryMixin],
        max_age: timedelta,
        max_entries: int,
    ) -> None:
        self.db_manager = db_manager
        self.table = table
        self.max_age = max_age
        self.max_entries = max_entries

    def get(self, key: str) -> str | None:
        """Return the value stored for ``key``, or None if there is no entry younger than ``max_age``."""
        try:
            with self.db_manager.session() as session:
                entry = session.get(self.table, key)
                if entry is None:
                    return None
                if datetime.now(timezone.utc) - entry.updated_at > self.max_age:
                    logger.debug("The cache entry for %s has expired.", key)
                    return None
                return entry.value
        except sqlalchemy.exc.SQLAlchemyError as error:
            logger.debug("Unable to read the cache entry for %s: %s", key, error)
            return None

    def put(self, key: str, value: str) -> None:
        """Store ``value`` for ``key``, replacing an existing entry."""
        try:
            with self.db_manager.session() as session, session.begin():
                session.merge(self.table(key=key, value=value, updated_at=datetime.now(timezone.utc)))
            self._evict()
        except sqlalchemy.exc.SQLAlchemyError as error:
            logger.debug("Unable to write the cache entry for %s: %s", key, error)

    def _evict(self) -> None:
        with self.db_manager.session() as session, session.begin():
            count = session.scalar(select(func.count()).select_from(self.table)) or 0
            excess = count - self.max_entries
            if excess <= 0:
                return
            oldest = select(self.table.key).order_by(self.table.updated_at).limit(excess)
            session.execute(delete(self.table).where(self.table.key.in_(oldest)))
            logger.debug("Evicted %s entries from %s.", excess, self.table.__tablename__)  # type: ignore[attr-defined]


class DiskCaches:
    """The HTTP response cache and the package metadata cache sharing one database."""

    def __init__(self, db_path: str) -> None:
        self.db_manager = DatabaseManager(db_path)
        self.db_manager.create_tables()
        max_age = timedelta(seconds=defaults.getint("cache", "max_age_seconds", fallback=86400))
        max_entries = defaults.getint("cache", "max_entries", fallback=20000)
        self.http = DiskCache(self.db_manager, HttpCacheEntry, max_age, max_entries)
        self.metadata = DiskCache(self.db_manager, MetadataCacheEntry, max_age, max_entries)

    @classmethod
    def create(cls, output_path: str) -> "DiskCaches | None":
        """Create the caches in ``output_path``, or return None if caching is disabled in the ``[cache]`` section."""
        if not defaults.getboolean("cache", "enabled", fallback=True):
            return None
        os.makedirs(output_path, exist_ok=True)
        db_path = os.path.join(output_path, defaults.get("cache", "db_name", fallback="ortolan-cache.db"))
        logger.debug("Using the cache database %s.", db_path)
        return cls(db_path)
