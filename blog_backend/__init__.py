"""
Backend package for the blog API.

This package provides a FastAPI application over a storage layer with an
in-memory and a SQL implementation, plus a markdown mirror of every post.
"""
