"""
Docs index build and query package.

This package provides the offline index pipeline and the query side:
- version: major.minor version values and parsing
- models: page types, pages, postings and the immutable index
- classifier: page type inference from documentation HTML
- builder: raw search data -> typed, sorted index artifact
- storage: artifact persistence and versioned index selection
- query_engine: prefix-aware scored token search
"""
