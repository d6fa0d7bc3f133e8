"""Command-line interface for coursemart."""
