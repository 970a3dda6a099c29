"""Platform Event Intelligence: tenant-scoped event queries for AI agents."""

__version__ = "0.1.0"
