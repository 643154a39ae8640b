"""
GraphQL API for the book catalog.

This package provides:
- Book search with genre and publication year filters
- Redis result caching with in-flight request de-duplication
- Per-endpoint rate limiting
- Author and comment lookups
"""
