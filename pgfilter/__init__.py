"""Admin listing filters that translate submitted values into SQL predicates."""
