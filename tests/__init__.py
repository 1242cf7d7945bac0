"""
mapreviews Test Suite.

- unit/: collectors, normalization, polling, stats, enrichment, delivery
- integration/: pipeline controller flows and the HTTP API
- conftest.py: shared fixtures and fakes

Run tests with: pytest
"""
