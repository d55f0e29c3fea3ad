"""HTTP API: FastAPI application factory and v1 routes."""
