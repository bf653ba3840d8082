"""
Core module for configuration, database setup and error types
"""
from .config import settings, Settings
from .database import build_engine, create_tables, test_connection, Base

__all__ = ["settings", "Settings", "build_engine", "create_tables", "test_connection", "Base"]
