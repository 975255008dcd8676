"""Pellet burner gateway: local REST API for NBE pellet burners over UDP."""

__version__ = "0.1.0"
