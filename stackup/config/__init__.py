"""Configuration file handling."""
from stackup.config.loader import (
    ConfigFileError,
    load_repositories,
    load_services,
    write_services,
)

__all__ = ['ConfigFileError', 'load_repositories', 'load_services', 'write_services']
