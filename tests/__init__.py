"""
WMTS Tile Pruner Test Suite

Structure:
- unit/: Unit tests for individual components
- integration/: Tests against a live WMTS endpoint (opt-in)
- fixtures/: Test data and fixtures
"""
