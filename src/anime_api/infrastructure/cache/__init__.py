"""Codec helpers shared by the cache layers."""
