"""Leaf utilities: civil clock, date keys and configuration."""
