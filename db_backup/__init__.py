"""Scheduled PostgreSQL dumps shipped to S3-compatible storage."""

__version__ = "0.1.0"
