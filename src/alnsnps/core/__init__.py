"""Core encodings."""
