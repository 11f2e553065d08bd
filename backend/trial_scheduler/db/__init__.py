# backend/trial_scheduler/db/__init__.py

"""
Database Module

Contains SQLAlchemy models and database configuration.
"""

from trial_scheduler.db.database import Base, engine, SessionLocal, get_db, init_db
from trial_scheduler.db import models

__all__ = [
    'Base',
    'engine',
    'SessionLocal',
    'get_db',
    'init_db',
    'models',
]
