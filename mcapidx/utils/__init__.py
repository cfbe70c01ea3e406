"""Logging and configuration utilities."""
