"""FarePlay casino registry and discovery service."""

__version__ = "1.0.0"

# Stamped on every casino record at registration and reported back to clients.
PROTOCOL_VERSION = "1.0.0"
