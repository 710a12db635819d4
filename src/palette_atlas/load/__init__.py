"""Loading of the taxonomy table and the sample image archive."""
