"""Car World CRM backend for Mauli Car World."""

__version__ = "1.0.0"
