"""
SCRIPTORIUM - Property-Based Testing Suite

Property-based testing using Hypothesis to discover edge cases and
invariants in reference parsing, tokenization, hashing and versification.
"""
