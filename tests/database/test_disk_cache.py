# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""Tests for the on-disk caches."""

import os
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from ortolan.config.defaults import defaults
from ortolan.database.database_manager import DatabaseManager
from ortolan.database.disk_cache import DiskCache, DiskCaches
from ortolan.database.table_definitions import HttpCacheEntry, MetadataCacheEntry


@pytest.fixture(name="db_manager")
def create_db_manager(tmp_path: Path) -> DatabaseManager:
    """Create a database with the cache tables."""
    db_manager = DatabaseManager(os.path.join(tmp_path, "cache.db"))
    db_manager.create_tables()
    return db_manager


def store_entry(db_manager: DatabaseManager, key: str, value: str, age: timedelta) -> None:
    """Store an HTTP cache entry that was written ``age`` ago."""
    with db_manager.session() as session, session.begin():
        session.add(HttpCacheEntry(key=key, value=value, updated_at=datetime.now(timezone.utc) - age))


def test_put_and_get(db_manager: DatabaseManager) -> None:
    """Test that stored values are returned and replaced."""
    cache = DiskCache(db_manager, HttpCacheEntry, timedelta(days=1), 10)
    assert cache.get("https://example.com/a") is None

    cache.put("https://example.com/a", '{"a": 1}')
    assert cache.get("https://example.com/a") == '{"a": 1}'

    cache.put("https://example.com/a", '{"a": 2}')
    assert cache.get("https://example.com/a") == '{"a": 2}'


def test_tables_are_separate(db_manager: DatabaseManager) -> None:
    """Test that the HTTP and metadata caches do not share entries."""
    http = DiskCache(db_manager, HttpCacheEntry, timedelta(days=1), 10)
    metadata = DiskCache(db_manager, MetadataCacheEntry, timedelta(days=1), 10)
    http.put("key", "http")
    assert metadata.get("key") is None


def test_expired_entry(db_manager: DatabaseManager) -> None:
    """Test that entries older than the maximum age are treated as absent."""
    store_entry(db_manager, "old", "value", timedelta(days=2))
    store_entry(db_manager, "fresh", "value", timedelta(hours=1))
    cache = DiskCache(db_manager, HttpCacheEntry, timedelta(days=1), 10)
    assert cache.get("old") is None
    assert cache.get("fresh") == "value"


def test_eviction(db_manager: DatabaseManager) -> None:
    """Test that the oldest entries are evicted when the table is full."""
    store_entry(db_manager, "oldest", "1", timedelta(hours=2))
    store_entry(db_manager, "older", "2", timedelta(hours=1))
    cache = DiskCache(db_manager, HttpCacheEntry, timedelta(days=1), 2)

    cache.put("new", "3")

    assert cache.get("oldest") is None
    assert cache.get("older") == "2"
    assert cache.get("new") == "3"


def test_missing_table(tmp_path: Path) -> None:
    """Test that a database without the cache tables behaves like an empty cache."""
    cache = DiskCache(DatabaseManager(os.path.join(tmp_path, "empty.db")), HttpCacheEntry, timedelta(days=1), 10)
    cache.put("key", "value")
    assert cache.get("key") is None


def test_create_caches(tmp_path: Path) -> None:
    """Test creating the caches in the output directory."""
    caches = DiskCaches.create(os.path.join(tmp_path, "output"))
    assert caches is not None
    assert os.path.isfile(os.path.join(tmp_path, "output", "ortolan-cache.db"))
    caches.metadata.put("NPM::a:1.0.0", "{}")
    assert caches.metadata.get("NPM::a:1.0.0") == "{}"


def test_create_disabled_caches(tmp_path: Path) -> None:
    """Test that no caches are created if caching is disabled."""
    defaults.set("cache", "enabled", "False")
    output_path = os.path.join(tmp_path, "output")
    assert DiskCaches.create(output_path) is None
    assert not os.path.exists(output_path)
