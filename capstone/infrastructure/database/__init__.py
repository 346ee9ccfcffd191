"""Database models, session management and unit of work."""
