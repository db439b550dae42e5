# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module implements SQLAlchemy types for Python data types that cannot be automatically stored."""

import datetime
from typing import Any

from sqlalchemy import String, TypeDecorator


class UTCDateTime(TypeDecorator):  # pylint: disable=W0223
    """SQLAlchemy column type storing timezone-aware datetime objects as sortable UTC strings.

    https://docs.sqlalchemy.org/en/20/core/custom_types.html#store-timezone-aware-timestamps-as-timezone-naive-utc
    """

    # It is stored in the database as a string
    impl = String

    #: :meta private:
    cache_ok = True

    def process_bind_param(self, value: None | Any, dialect: Any) -> None | str:
        """Process when storing a ``datetime`` object.

        value: None | datetime.datetime
            The value being stored. Naive values are considered to be in UTC.
        """
        if value is None:
            return None
        if not isinstance(value, datetime.datetime):
            raise TypeError("UTCDateTime type expects a datetime object")
        if not value.tzinfo:
            value = value.replace(tzinfo=datetime.timezone.utc)
        return value.astimezone(datetime.timezone.utc).isoformat(timespec="microseconds")

    def process_result_value(self, value: None | str, dialect: Any) -> None | datetime.datetime:
        """Process when loading a ``datetime`` object.

        value: None | str
            The value being loaded.
        """
        if value is None:
            return None
        result = datetime.datetime.fromisoformat(value)
        if result.tzinfo:
            return result
        return result.replace(tzinfo=datetime.timezone.utc)
