# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""ORM table definitions of the on-disk caches."""

from datetime import datetime

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ortolan.database.database_manager import ORMBase
from ortolan.database.db_custom_types import UTCDateTime


class CacheEntryMixin:
    """The columns shared by all cache tables."""

    #: The key of the entry.
    key: Mapped[str] = mapped_column(String, primary_key=True)

    #: The cached value.
    value: Mapped[str] = mapped_column(Text, nullable=False)

    #: The time the entry was stored.
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)


class HttpCacheEntry(CacheEntryMixin, ORMBase):
    """ORM class for HTTP response bodies keyed by the request URL."""

    __tablename__ = "http_cache"


class MetadataCacheEntry(CacheEntryMixin, ORMBase):
    """ORM class for derived package metadata keyed by package coordinates."""

    __tablename__ = "metadata_cache"
