"""Bundled rule catalog: one JSON document per module."""
