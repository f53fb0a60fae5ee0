"""Domain Models: Value objects, entities and result types."""
