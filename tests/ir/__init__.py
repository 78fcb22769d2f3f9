"""IR model, references, versification, loss and validation tests."""
