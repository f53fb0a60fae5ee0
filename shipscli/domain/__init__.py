"""Domain Layer: Models, interfaces and events with no infrastructure dependencies."""
