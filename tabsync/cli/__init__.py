"""Command line tools for TabSync."""
