# File: site_sync/parser/__init__.py
"""site_sync.parser: robots.txt, sitemap XML and HTML page parsing."""
