"""
eventhub Test Suite
===================

Test Organization
-----------------
- tests/unit/          : Fast unit tests, no external dependencies
- tests/conftest.py    : Sample events, subscribers and hub fixtures

Testing Philosophy
------------------
- Unit tests: Fast, isolated, one behavior per test
- Use pytest markers to categorize and selectively run tests
- Follow AAA pattern: Arrange, Act, Assert
"""
