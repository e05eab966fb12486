"""API routes package initialization."""
from bumpdispatch.api.routes import health, bumps

__all__ = ["health", "bumps"]
