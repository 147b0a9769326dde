"""Command-line entry point and curses dashboard."""
