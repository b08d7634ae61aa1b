"""Service layer: providers, polling, storage and database access."""
