"""Persistence: SQLAlchemy engine, session factory, and the cache table model."""
