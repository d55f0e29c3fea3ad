"""Domain types: statuses, token metadata and request validation."""
