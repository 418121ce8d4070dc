"""thinkgate: thinking-budget rewriting proxy and backend supervisor."""

__version__ = "0.1.0"

__all__ = ["__version__"]
