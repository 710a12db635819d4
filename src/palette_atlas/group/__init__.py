"""Clustering of distribution vectors and cluster summaries."""
