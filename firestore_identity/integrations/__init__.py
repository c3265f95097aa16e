"""Framework integrations (FastAPI)."""
