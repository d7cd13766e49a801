"""HR management backend: accounts, role hierarchy and access control."""

__version__ = "0.1.0"
