"""
Shared test setup: keep logs on stdout only and point the default engine at
an in-memory database before the package is imported.
"""
import os

os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("DATABASE_URL", "sqlite://")
