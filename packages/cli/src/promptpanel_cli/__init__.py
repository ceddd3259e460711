"""Command-line interface for promptpanel."""
