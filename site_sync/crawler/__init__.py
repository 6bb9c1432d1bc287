# File: site_sync/crawler/__init__.py
"""site_sync.crawler: discovery, two-tier fetching, browser page pool and the BFS controller."""
