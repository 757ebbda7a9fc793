"""Web layer: FastAPI webhook and read-only JSON API."""
