"""
Test suite for Rajdhani ERP.

Run all tests: pytest
Run unit tests only: pytest tests/unit/
Run specific file: pytest tests/unit/test_planning_service.py -v
"""
