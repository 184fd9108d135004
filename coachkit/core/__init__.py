"""Ambient configuration and logging."""
