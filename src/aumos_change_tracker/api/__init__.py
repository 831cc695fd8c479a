"""HTTP read surface for change logs."""
