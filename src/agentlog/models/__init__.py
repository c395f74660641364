"""Event dataclasses and database models."""
