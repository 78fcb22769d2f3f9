"""Self-check plan, report and executor tests."""
