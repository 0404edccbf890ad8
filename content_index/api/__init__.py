"""HTTP surface for the content index."""
