"""Database infrastructure for the read-only record adapter."""
