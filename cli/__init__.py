"""Command line tools for a running brewery twin service."""
