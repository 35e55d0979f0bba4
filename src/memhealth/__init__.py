"""Memory health & document curation engine for AI assistant project memory."""

__version__ = "0.1.0"
