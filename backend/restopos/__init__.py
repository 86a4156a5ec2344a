"""RestoPOS backend: orders, inventory and sales for a single restaurant."""

__version__ = "0.1.0"
