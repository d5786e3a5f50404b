"""Aggregated views built on top of the occurrence generator."""
