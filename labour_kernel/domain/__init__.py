"""Kernel domain contracts: clock, event types, external collaborators."""
