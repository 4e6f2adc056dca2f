"""Declarative base for all Palimpsest models.

Models inherit a UUID primary key and UTC ``created_at``/``updated_at`` audit
columns from advanced-alchemy.
"""

from advanced_alchemy.base import UUIDAuditBase


class Base(UUIDAuditBase):
    __abstract__ = True
