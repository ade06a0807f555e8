"""Test configuration helpers (markers)."""
