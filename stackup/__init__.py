"""stackup - server bootstrap and docker compose service deployment."""

__version__ = "0.1.0"
