"""Document-facing service, settings and the playground application."""
