"""devbox - lifecycle manager for a persistent containerized dev environment."""

__version__ = "0.4.0"
