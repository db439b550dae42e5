# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This DatabaseManager module handles the sqlite database connection."""

import logging

import sqlalchemy.exc
from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, Session

logger: logging.Logger = logging.getLogger(__name__)


class ORMBase(DeclarativeBase):
    """ORM base class."""


class DatabaseManager:
    """This class handles and manages the connection to a sqlite database."""

    def __init__(self, db_path: str, base: type[DeclarativeBase] = ORMBase):
        """Initialize instance.

        Parameters
        ----------
        db_path : str
            The path to the target database. ``:memory:`` creates an in-memory database.
        base : type[DeclarativeBase]
            The declarative base whose tables are managed.
        """
        self.engine = create_engine(f"sqlite+pysqlite:///{db_path}", echo=False)
        self.db_name = db_path
        self._base = base

    def create_tables(self) -> None:
        """Create all tables known to the declarative base that do not exist yet."""
        try:
            self._base.metadata.create_all(self.engine, checkfirst=True)
        except sqlalchemy.exc.SQLAlchemyError as error:
            logger.error("Database error on create tables %s", error)

    def session(self) -> Session:
        """Return a new session bound to the database."""
        return Session(self.engine)
