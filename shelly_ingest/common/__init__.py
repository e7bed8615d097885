"""Shared configuration, database and error helpers."""
