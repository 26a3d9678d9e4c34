"""kubesafe - natural-language kubectl with guard rails."""

__version__ = "0.1.0"
__logo__ = "⎈"
