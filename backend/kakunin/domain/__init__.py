"""Domain layer: pure business rules with no framework or I/O dependencies."""
