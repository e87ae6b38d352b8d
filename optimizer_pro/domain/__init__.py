"""Domain models, free of collection and rendering concerns."""
