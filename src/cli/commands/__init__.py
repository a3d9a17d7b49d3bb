"""CLI command modules."""

from .ask import ask
from .maintenance import providers, sweep
from .memory import memory

__all__ = ["ask", "memory", "sweep", "providers"]
