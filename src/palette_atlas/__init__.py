"""Cluster photo collections by dominant-color composition."""

from __future__ import annotations

__version__ = "0.1.0"
