"""
Test Suite

Tests for the TenantDesk back office. Repositories are replaced by the
in-memory fakes in tests/fakes.py; test_repositories.py checks the real
repositories' query shapes against a mocked collection.

To run tests:
    pytest
"""
