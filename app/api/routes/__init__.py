"""API routes package initialization."""
from app.api.routes import backfill, health, history, option_chain

__all__ = ["backfill", "health", "history", "option_chain"]
