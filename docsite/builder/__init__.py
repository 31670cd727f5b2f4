"""Site builder: Markdown sources to static HTML."""

from .fences import check_fences, extract_title
from .renderer import SiteBuilder

__all__ = ["SiteBuilder", "check_fences", "extract_title"]
