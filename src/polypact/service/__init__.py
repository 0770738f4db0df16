"""PolyPact HTTP service.

FastAPI-based REST API over the reasoning core, with bearer-token identity.
"""

# Lazy imports to avoid circular import issues
# (api.py imports the PolyPact facade which imports service.config)
__all__ = [
    "app",
    "create_app",
    "ServiceConfig",
    "get_config",
    "TokenVerifier",
]

# Direct imports that don't cause cycles
from .config import ServiceConfig, get_config
from .auth import TokenVerifier


def __getattr__(name):
    """Lazy load api module to avoid circular imports."""
    if name == "app":
        from .api import app
        return app
    elif name == "create_app":
        from .api import create_app
        return create_app
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
