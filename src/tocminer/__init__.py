"""
tocminer - recover a book's table of contents from library catalogues and bookstores.
"""

from __future__ import annotations

__version__ = "0.1.0"

from .config import Config
from .extractor import BookTarget, ExtractionResult
from .service import TocService

__all__ = ["__version__", "BookTarget", "Config", "ExtractionResult", "TocService"]
