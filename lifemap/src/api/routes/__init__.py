"""HTTP API route handlers."""

from . import plans, system

__all__ = ["plans", "system"]
