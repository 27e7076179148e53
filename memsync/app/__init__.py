"""Application wiring: configuration, service container and CLI."""
