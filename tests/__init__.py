"""Test suite for namjukes.

Test Structure:
- unit/: Unit tests per package (api/http, ingest, catalog, gateway, config, cli, utils)
- fixtures/: Test doubles and wire-format helpers
- conftest.py: Shared fixtures
"""
