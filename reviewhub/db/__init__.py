"""
Persistence layer.

- base: declarative Base and UTC helpers
- session: engine, SessionLocal, get_db dependency, init_db
- models: ORM entities
- enums: platform, status and role enumerations
"""

from reviewhub.db.base import Base, utcnow
from reviewhub.db.session import SessionLocal, get_db, init_db

__all__ = ["Base", "utcnow", "SessionLocal", "get_db", "init_db"]
