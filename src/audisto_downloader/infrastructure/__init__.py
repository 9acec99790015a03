"""Infrastructure layer: adapters, configuration, logging and CLI."""
