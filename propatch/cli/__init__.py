"""Command-line interface for propatch."""
