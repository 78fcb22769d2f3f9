"""Structured logging tests."""
