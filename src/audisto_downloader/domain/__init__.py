"""Domain layer: checkpoint model, policies and errors."""
