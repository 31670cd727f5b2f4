"""Build Markdown documentation into a static site and publish it."""

__version__ = "0.3.0"
