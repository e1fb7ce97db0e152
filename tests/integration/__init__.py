"""
Integration Tests
=================

Tests that run pipeline stages on a local SparkSession.
These tests verify end-to-end functionality.

Run with: pytest tests/integration/ -v
"""
