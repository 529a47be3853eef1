"""Database session, query helpers, and CRUD utilities."""
