"""
Labour Kernel

Shared infrastructure for the work-to-cost pipeline:
- SQLAlchemy declarative base, engine and repository scope
- Structured JSON logging
- Typed exception hierarchy
- Injectable clock
- Contracts for the event sink and external collaborators
"""

__version__ = "0.1.0"
