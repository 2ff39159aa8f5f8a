"""Social-graph traversal engine for the mutual-support network."""
