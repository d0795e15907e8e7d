"""Command-line interface for dbpulse."""
