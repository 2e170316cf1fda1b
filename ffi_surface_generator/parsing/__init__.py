"""Loaders for the type database produced by the header parser."""
