"""
Root conftest: makes the repository root importable so tests can use the
``examples`` package without installing it.
"""
