"""Async SQLAlchemy plumbing: engine, sessions, table creation, upserts and pagination."""
