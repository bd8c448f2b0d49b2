"""Command-line interface for the booking engine."""
