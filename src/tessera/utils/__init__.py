"""Shared utilities: HTML-safe strings and sanitizing."""
