"""Literal KEY=value substitution for service .env files.

Values are secrets typed by a human (Mongo URIs, API keys) and routinely
contain '&', '/', '\\', '$' and '|'. Nothing here goes through a regex
replacement or a shell: a line is matched by its literal "KEY=" prefix and
rebuilt by string concatenation, so the value lands in the file byte for byte.

Templates use one of two historical naming schemes for the same settings
(MONGO_URI/MONGO_DB vs MONGODB_URI/MONGODB_DATABASE, ...). Each semantic
field maps to all of its aliases and every alias present in a file is
updated; aliases that are absent are never appended.
"""
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Tuple

from stackup.core.logger import get_logger

logger = get_logger(__name__)

# Semantic field -> keys that carry it, across both naming conventions
FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "port": ("PORT",),
    "mongo_uri": ("MONGO_URI", "MONGODB_URI"),
    "mongo_db": ("MONGO_DB", "MONGODB_DATABASE"),
    "api_key": ("INTERNAL_API_KEY", "API_MASTER_KEY"),
    "external_api_key": ("EXTERNAL_API_KEY", "RAPIDAPI_KEY"),
}


class EnvValueError(ValueError):
    """Raised for a key or value that cannot be written as one KEY=value line."""
    pass


@dataclass
class EnvUpdate:
    """Result of applying a set of field values to env file content."""

    content: str
    updated_keys: List[str] = field(default_factory=list)
    missing_fields: List[str] = field(default_factory=list)

    @property
    def changed_any(self) -> bool:
        return bool(self.updated_keys)


def _validate(key: str, value: str) -> None:
    if not key or "=" in key or any(c.isspace() for c in key):
        raise EnvValueError(f"Invalid env key: {key!r}")
    if "\n" in value or "\r" in value:
        raise EnvValueError(f"Value for {key} must not contain line breaks")


def _lines(content: str) -> List[str]:
    """Split on '\\n' only, keeping endings (str.splitlines also breaks on \\f, \\x1c, ...)."""
    parts = content.split("\n")
    lines = [part + "\n" for part in parts[:-1]]
    if parts[-1]:
        lines.append(parts[-1])
    return lines


def _split_ending(line: str) -> Tuple[str, str]:
    """Split a line into its body and its original line ending."""
    if line.endswith("\r\n"):
        return line[:-2], "\r\n"
    if line.endswith("\n"):
        return line[:-1], "\n"
    return line, ""


def replace_env_value(content: str, key: str, value: str) -> Tuple[str, int]:
    """Set KEY=value on every line that starts with "KEY=".

    Args:
        content: Env file content
        key: Variable name, matched only at the start of a line
        value: Literal value, written verbatim

    Returns:
        Tuple of (new content, number of lines replaced). A key that is not
        present leaves the content untouched.

    Raises:
        EnvValueError: If the key is malformed or the value spans lines
    """
    _validate(key, value)
    prefix = key + "="

    count = 0
    lines = _lines(content)
    for index, line in enumerate(lines):
        body, ending = _split_ending(line)
        if body.startswith(prefix):
            lines[index] = prefix + value + ending
            count += 1

    if not count:
        return content, 0
    return "".join(lines), count


def present_keys(content: str, keys: Tuple[str, ...]) -> List[str]:
    """Return the keys (in alias order) that have a KEY= line in content."""
    bodies = [_split_ending(line)[0] for line in _lines(content)]
    return [key for key in keys if any(body.startswith(key + "=") for body in bodies)]


def detect_conventions(content: str) -> Dict[str, List[str]]:
    """Map each semantic field to the alias keys this file actually uses."""
    return {name: present_keys(content, aliases) for name, aliases in FIELD_ALIASES.items()}


def apply_env_values(content: str, values: Mapping[str, str]) -> EnvUpdate:
    """Apply semantic field values to env content.

    Args:
        content: Env file content
        values: Field name (see FIELD_ALIASES) or raw KEY -> value

    Returns:
        EnvUpdate with the new content, the keys rewritten, and the fields
        for which the file has no key at all
    """
    update = EnvUpdate(content=content)
    for name, value in values.items():
        aliases = FIELD_ALIASES.get(name, (name,))
        touched = False
        for key in aliases:
            update.content, count = replace_env_value(update.content, key, str(value))
            if count:
                update.updated_keys.append(key)
                touched = True
        if not touched:
            update.missing_fields.append(name)
    return update


def read_env_file(path: Path) -> str:
    # newline='' keeps \r\n endings exactly as they are on disk
    with open(path, encoding="utf-8", newline="") as f:
        return f.read()


def write_env_file(path: Path, content: str) -> None:
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(content)


def update_env_file(path: Path, values: Mapping[str, str]) -> EnvUpdate:
    """Apply values to an existing env file in place.

    The file is only rewritten when its content actually changes.
    """
    path = Path(path)
    original = read_env_file(path)
    update = apply_env_values(original, values)
    if update.content != original:
        write_env_file(path, update.content)
    logger.debug(f"{path}: updated {', '.join(update.updated_keys) or 'nothing'}")
    return update


def render_env_file(template: Path, target: Path, values: Mapping[str, str]) -> EnvUpdate:
    """Create target from template with values applied.

    Always starts from the template, so running it again with the same
    values produces a byte-identical file.
    """
    template = Path(template)
    if not template.exists():
        raise FileNotFoundError(f"Environment template not found: {template}")

    update = apply_env_values(read_env_file(template), values)
    target = Path(target)
    target.parent.mkdir(parents=True, exist_ok=True)
    write_env_file(target, update.content)
    logger.debug(f"Rendered {target} from {template.name}: {', '.join(update.updated_keys)}")
    return update
