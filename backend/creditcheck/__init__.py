"""Credit-bureau report acquisition: backend API and client-side flow."""

__version__ = "0.3.0"
