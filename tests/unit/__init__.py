"""Unit tests for the ballot service.

These tests run without a database: the ballot store is replaced by a fake
whose transactions count commits and rollbacks, and whose connection
returns scripted rows.
"""
