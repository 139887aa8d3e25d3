"""Integration tests for the ballot service.

This package contains integration tests that run against a real PostgreSQL
server, including:

- End-to-end vote flow tests
- Concurrent duplicate-ballot prevention
- API endpoints wired to the live ballot store

Tests are skipped when PostgreSQL cannot be reached.
"""
