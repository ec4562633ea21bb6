"""
Model package exports.

Import all SQLAlchemy models here so metadata registration for
`Base.metadata.create_all` and the startup schema check work without extra
imports.
"""

from db.models.sales_record import SalesRecord
from db.models.user_account import AuthSession, UserAccount

__all__ = [
    "AuthSession",
    "SalesRecord",
    "UserAccount",
]
