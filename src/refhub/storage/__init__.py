"""Persistence layer: engine, sessions and the declarative base."""

from refhub.storage.db import Database
from refhub.storage.models import Base

__all__ = ["Base", "Database"]
