"""Core configuration, database, logging and errors."""
