"""Packaged sample doctrine spec and corpus."""
