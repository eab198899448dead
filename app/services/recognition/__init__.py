"""Descriptor extractor implementations."""
