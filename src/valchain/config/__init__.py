"""Configuration: frozen section models, settings loader and logging setup."""
