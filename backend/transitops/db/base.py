"""
Declarative base shared by all models.

Alembic and the test suite read Base.metadata; importing transitops.models
registers every table on it.
"""
from sqlalchemy.orm import declarative_base

Base = declarative_base()
