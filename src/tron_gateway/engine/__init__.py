"""Gateway engine: services, models and the composing client."""
