"""
tests/unit/conftest.py

Unit tests build unsaved model objects without an app. Every mapped class
is imported here so relationship("...") names resolve when SQLAlchemy
configures the mappers.
"""

from splitbook.app.models import (  # noqa: F401
    account,
    group,
    group_member,
    person,
    settlement,
    split_share,
    transaction,
    user,
)
