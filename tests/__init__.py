"""
First/Last Test Suite
=====================

Test Organization
-----------------
- tests/unit/          : Fast unit tests with mocks and plain values (no I/O)
- tests/integration/   : Services against an in-memory SQLite database

Testing Philosophy
------------------
- Unit tests: Fast, isolated, test scoring and flair rules
- Integration tests: Real DatabaseService, real EventBus, mocked gateway
- Use pytest markers to categorize and selectively run tests
- Follow AAA pattern: Arrange, Act, Assert
"""
