"""Single-upstream reverse proxy that rewrites HTML on the way back."""

__version__ = "0.1.0"
