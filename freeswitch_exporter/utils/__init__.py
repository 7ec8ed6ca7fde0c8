"""Shared helpers: errors, logging and scrape data structures."""
