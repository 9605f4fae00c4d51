"""Compute engines."""
