"""Service .env generation."""
from stackup.envfile.substitution import (
    FIELD_ALIASES,
    EnvValueError,
    apply_env_values,
    render_env_file,
    replace_env_value,
    update_env_file,
)

__all__ = [
    'FIELD_ALIASES',
    'EnvValueError',
    'apply_env_values',
    'render_env_file',
    'replace_env_value',
    'update_env_file',
]
