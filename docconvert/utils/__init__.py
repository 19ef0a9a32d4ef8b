"""Shared utilities: logging, errors, HTTP clients, office suite and dispatch."""
