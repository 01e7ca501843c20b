"""Domain layer value objects."""
