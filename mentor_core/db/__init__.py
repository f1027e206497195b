"""Database layer: engine/session management and ORM models."""
