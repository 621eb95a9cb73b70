"""UsefulTools plugin host - registry, cache and installer for tool plugins."""

__version__ = "1.0.0"
