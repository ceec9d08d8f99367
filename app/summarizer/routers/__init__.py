"""
Routers package for FastAPI endpoints.

Organized by domain:
- extract: Field listing and batch metadata extraction
"""

from . import extract

__all__ = ["extract"]
