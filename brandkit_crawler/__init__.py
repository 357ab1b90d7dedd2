"""Crawl a website and build a brand kit from its images, fonts and colors."""

__version__ = "0.1.0"
