"""ISO image manager (state-driven, idempotent).

Core design goals:
- Observe host state every run, never trust a cached record
- Idempotent fetch, verify and mount
- One image's failure never blocks the others
- Centralized logging
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
