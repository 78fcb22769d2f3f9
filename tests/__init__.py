"""SCRIPTORIUM test suite."""
