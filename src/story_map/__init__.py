"""Story collection, moderation, and map pin classification engine."""

__version__ = "0.1.0"
