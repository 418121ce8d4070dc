"""Shared helpers for thinkgate."""
