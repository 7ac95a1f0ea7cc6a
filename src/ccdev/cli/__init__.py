"""Command-line interface for ccdev."""
