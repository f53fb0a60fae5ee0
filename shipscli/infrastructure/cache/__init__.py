"""Cache layer: in-memory L1 in front of a diskcache L2 store."""
