# src/flowtester/testing/__init__.py
"""Testing infrastructure for flowtester.

Provides an in-memory host runtime used by the test suite and served by
``flowtester serve``.
"""
