"""Palette extraction, taxonomy matching and distribution building."""
