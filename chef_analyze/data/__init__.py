"""Data layer - models and on-disk persistence."""

from .persistence import ObjectWriter, ReportStore, get_cache_dir
from .models import (
    CookbookFile,
    CookbookRecord,
    CookbooksReport,
    CookbookVersion,
    CookstyleOffense,
    CookstyleResult,
    Node,
    NodeReportItem,
)

__all__ = [
    "ObjectWriter",
    "ReportStore",
    "get_cache_dir",
    "CookbookFile",
    "CookbookRecord",
    "CookbooksReport",
    "CookbookVersion",
    "CookstyleOffense",
    "CookstyleResult",
    "Node",
    "NodeReportItem",
]
