"""Typed operations on the request manager and fill manager contracts."""
