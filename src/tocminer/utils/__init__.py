"""Small shared helpers."""

from .atomic import atomic_write_bytes

__all__ = ["atomic_write_bytes"]
