"""Kernel utilities: identifier parsing and per-key locking."""
