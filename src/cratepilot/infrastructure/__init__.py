"""Infrastructure layer: rate limiting, integrations, persistence, observability, lifecycle."""
