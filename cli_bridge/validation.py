"""
CLI Bridge: Option sanitizer and command validator.

Both run before anything is spawned and raise ValidationError so the caller
gets a synchronous rejection instead of a stream.
"""
import re
from typing import Any, Callable, Dict, List, Optional, Tuple

from . import config
from .commands import command_tokens
from .errors import ValidationError
from .models import CommandOptions

UUID_RE = re.compile(r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}", re.I)

INTERNAL_PREFIX = "_"

ID_MARKERS = ("environmentid", "environment_id")
API_KEY_MARKERS = ("apikey", "api_key")
PATH_MARKERS = ("filename", "file_name", "outpath", "folder")


# ─── Field checks ─────────────────────────────────────────────────────────────

def is_valid_uuid(value: Any) -> bool:
    if not value or not isinstance(value, str):
        return False
    return UUID_RE.fullmatch(value.strip()) is not None


def is_valid_api_key(value: Any, min_length: int = config.API_KEY_MIN_LENGTH) -> bool:
    if not value or not isinstance(value, str):
        return False
    return len(value.strip()) >= min_length


def is_valid_file_path(value: Any, max_length: int = config.PATH_MAX_LENGTH) -> bool:
    if not value or not isinstance(value, str):
        return False
    path = value.strip()
    return 0 < len(path) < max_length and ".." not in path and "\0" not in path


def _has_marker(key: str, markers: Tuple[str, ...]) -> bool:
    lowered = key.lower()
    return any(m in lowered for m in markers)


# ─── Sanitizer ────────────────────────────────────────────────────────────────

def sanitize_options(
    command: str,
    options: Optional[CommandOptions],
    api_key_min_length: int = config.API_KEY_MIN_LENGTH,
    path_max_length: int = config.PATH_MAX_LENGTH,
) -> CommandOptions:
    """
    Return a cleaned copy of options: strings trimmed, everything else as-is.
    Every violation is collected; if any were found a single ValidationError
    lists all of them. `command` is accepted for symmetry with validate_command.
    """
    sanitized: CommandOptions = {}
    errors: List[str] = []

    for key, value in (options or {}).items():
        if key.startswith(INTERNAL_PREFIX):
            sanitized[key] = value
            continue

        sanitized[key] = value.strip() if isinstance(value, str) else value
        if not value:
            continue

        if _has_marker(key, ID_MARKERS) and not is_valid_uuid(value):
            errors.append(f"{key} must be a valid UUID format")

        if _has_marker(key, API_KEY_MARKERS) and not is_valid_api_key(value, api_key_min_length):
            errors.append(f"{key} appears to be invalid")

        if _has_marker(key, PATH_MARKERS) and not is_valid_file_path(value, path_max_length):
            errors.append(f"{key} contains invalid characters or path traversal attempt")

    if errors:
        raise ValidationError(errors)
    return sanitized


# ─── Command rules ────────────────────────────────────────────────────────────

Rule = Callable[[str, CommandOptions], Optional[str]]


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple)):
        return len(value) > 0
    return True


def _join_keys(keys: Tuple[str, ...]) -> str:
    if len(keys) == 1:
        return keys[0]
    if len(keys) == 2:
        return f"{keys[0]} and {keys[1]}"
    return ", ".join(keys[:-1]) + f", and {keys[-1]}"


def require(*keys: str) -> Rule:
    def rule(command: str, options: CommandOptions) -> Optional[str]:
        if all(_present(options.get(k)) for k in keys):
            return None
        verb = "is" if len(keys) == 1 else "are"
        return f"{_join_keys(keys)} {verb} required for {command}"
    return rule


def require_source(id_key: str = "sourceEnvironmentId", key_key: str = "sourceApiKey",
                   folder_key: str = "folderName") -> Rule:
    """Either a remote source (id + key) or a local folder; an id needs its key."""
    def rule(command: str, options: CommandOptions) -> Optional[str]:
        has_id = _present(options.get(id_key))
        if not has_id and not _present(options.get(folder_key)):
            return f"Either {id_key}+{key_key} or {folder_key} is required for {command}"
        if has_id and not _present(options.get(key_key)):
            return f"{key_key} is required when using {id_key}"
        return None
    return rule


def implies(flag: str, dependent: str) -> Rule:
    def rule(command: str, options: CommandOptions) -> Optional[str]:
        if options.get(flag) is True and not _present(options.get(dependent)):
            return f"{dependent} is required when {flag} option is enabled"
        return None
    return rule


COMMAND_RULES: Dict[str, List[Rule]] = {
    "environment backup": [require("environmentId", "apiKey")],
    "environment restore": [require("environmentId", "apiKey", "fileName")],
    "environment clean": [require("environmentId", "apiKey")],
    "sync run": [
        require("targetEnvironmentId", "targetApiKey", "entities"),
        require_source(),
    ],
    "sync snapshot": [require("environmentId", "apiKey", "entities")],
    "sync diff": [
        require("targetEnvironmentId", "targetApiKey"),
        require_source(),
        implies("advanced", "outPath"),
    ],
}

# Domains whose actions the CLI validates on its own
LENIENT_DOMAINS = ("migrate-content", "migrations")


def validate_command(command: str, options: CommandOptions) -> None:
    """Raise ValidationError unless options satisfy the command's rules."""
    tokens = command_tokens(command)
    if tokens and tokens[0] in LENIENT_DOMAINS and len(tokens) >= 2:
        return

    key = " ".join(tokens[:2])
    rules = COMMAND_RULES.get(key)
    if rules is None or len(tokens) != 2:
        raise ValidationError([f"Unknown command: {command}"])

    errors = [msg for msg in (rule(key, options) for rule in rules) if msg]
    if errors:
        raise ValidationError(errors)
