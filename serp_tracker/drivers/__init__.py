"""Browser drivers."""
