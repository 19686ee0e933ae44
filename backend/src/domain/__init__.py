"""Domain layer: business rules with no framework or database dependencies."""
