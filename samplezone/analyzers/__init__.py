"""Signal analyzers."""
