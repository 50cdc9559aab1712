"""
Test suite for the workspace collaboration server.

This package contains tests organized by type:
- Unit tests for individual components
- Integration tests for the SQLite store and the ops API
- Test fixtures and utilities
"""
