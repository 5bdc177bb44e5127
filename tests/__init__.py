"""
Test suite for the voice shopping list core.

Run all tests: pytest
Run with coverage: pytest --cov=. --cov-report=html
Run unit tests only: pytest tests/unit/
Run specific file: pytest tests/unit/test_command_parser_service.py -v
"""
