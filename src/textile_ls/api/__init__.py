"""Outer surfaces: command line and REST API."""
