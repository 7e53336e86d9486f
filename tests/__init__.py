"""
Agenda test suite.

Layout:
    tests/unit/         Engine tests against in-memory repositories (tests/fakes.py)
    tests/integration/  SQLAlchemy repositories and the HTTP API on SQLite (aiosqlite)

Running Tests:
    pip install -e ".[test]"
    pytest tests/ -v
"""
