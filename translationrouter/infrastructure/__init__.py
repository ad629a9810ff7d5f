"""Infrastructure layer: adapters, configuration, observability and storage."""
