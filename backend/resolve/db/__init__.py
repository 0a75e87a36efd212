# resolve/db/__init__.py

"""
Database Module

Contains SQLAlchemy models, Pydantic schemas, and database configuration.
"""

from resolve.db.database import Base, engine, SessionLocal, get_db, init_db, transaction
from resolve.db import models, schemas

__all__ = [
    'Base',
    'engine',
    'SessionLocal',
    'get_db',
    'init_db',
    'transaction',
    'models',
    'schemas',
]
