"""plexr — plan + execute local development environment setups."""

__version__ = "0.1.0"
