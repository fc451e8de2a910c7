"""Crawl and sync pipeline: fetch, normalize, fingerprint, match, merge and write."""
