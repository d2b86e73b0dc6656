"""HTTP surface for the dispatch core."""
