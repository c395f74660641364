"""Database engine, session handling and repositories."""
