"""Concrete adapters for the browser, cache, scraper and storage interfaces."""
