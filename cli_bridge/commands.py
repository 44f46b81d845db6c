"""
CLI Bridge: Command table and argument builder.
Turns "<domain> <action>" plus an option mapping into a flat argv.
No shell is ever involved, so nothing here needs quoting.
"""
import re
from typing import Dict, List

from .models import CommandDefinition, CommandOptions, OptionSpec

SYNC_ENTITY_CHOICES = [
    "contentTypes",
    "contentTypeSnippets",
    "taxonomies",
    "collections",
    "assetFolders",
    "spaces",
    "languages",
    "webSpotlight",
    "workflows",
]

_UPPER_RE = re.compile(r"([A-Z])")


def _opt(id: str, label: str, type: str = "text", required: bool = False, **kw) -> OptionSpec:
    return OptionSpec(id=id, label=label, type=type, required=required, **kw)


def _env_options(prefix: str = "", label: str = "", required: bool = True) -> List[OptionSpec]:
    id_key = f"{prefix}EnvironmentId" if prefix else "environmentId"
    key_key = f"{prefix}ApiKey" if prefix else "apiKey"
    return [
        _opt(id_key, f"{label}Environment ID", required=required),
        _opt(key_key, f"{label}Management API Key", "password", required=required),
    ]


KONTENT_URL = _opt("kontentUrl", "Custom Kontent URL")

COMMANDS: Dict[str, CommandDefinition] = {
    "environment backup": CommandDefinition(
        name="Environment Backup",
        description="Backs up data from the specified environment into a .zip file.",
        options=_env_options() + [
            _opt("fileName", "Backup File Name"),
            _opt("secureAssetDeliveryKey", "Secure Asset Delivery Key", "password"),
            _opt("include", "Include Entities", "entity-multiselect"),
            _opt("exclude", "Exclude Entities", "entity-multiselect"),
            KONTENT_URL,
        ],
    ),
    "environment restore": CommandDefinition(
        name="Environment Restore",
        description="Restores data into the specified environment from a backup file.",
        options=_env_options() + [
            _opt("fileName", "Backup File Name", required=True),
            _opt("include", "Include Entities", "entity-multiselect"),
            _opt("exclude", "Exclude Entities", "entity-multiselect"),
            _opt("excludeInactiveLanguages", "Exclude Inactive Languages", "checkbox"),
            KONTENT_URL,
        ],
    ),
    "environment clean": CommandDefinition(
        name="Environment Clean",
        description="Deletes data from the specified environment.",
        options=_env_options() + [
            _opt("include", "Include Entities", "entity-multiselect"),
            _opt("exclude", "Exclude Entities", "entity-multiselect"),
            _opt("skipWarning", "Skip Warning", "checkbox"),
            KONTENT_URL,
        ],
    ),
    "sync run": CommandDefinition(
        name="Sync Run",
        description="Synchronizes content model from a source environment or snapshot folder.",
        options=_env_options("target", "Target ") + [
            _opt("entities", "Entities to Sync", "multiselect", required=True,
                 choices=SYNC_ENTITY_CHOICES),
        ] + _env_options("source", "Source ", required=False) + [
            _opt("folderName", "Source Folder Name"),
            _opt("skipConfirmation", "Skip Confirmation", "checkbox"),
            KONTENT_URL,
        ],
    ),
    "sync snapshot": CommandDefinition(
        name="Sync Snapshot",
        description="Saves a snapshot of the environment's content model into a folder.",
        options=_env_options() + [
            _opt("entities", "Entities to Snapshot", "multiselect", required=True,
                 choices=SYNC_ENTITY_CHOICES),
            _opt("folderName", "Output Folder Name"),
            KONTENT_URL,
        ],
    ),
    "sync diff": CommandDefinition(
        name="Sync Diff",
        description="Compares content models of two environments.",
        options=_env_options("target", "Target ") + _env_options("source", "Source ", required=False) + [
            _opt("folderName", "Source Folder Name"),
            _opt("entities", "Entities to Diff", "multiselect", choices=SYNC_ENTITY_CHOICES),
            _opt("advanced", "Generate Advanced Diff HTML", "checkbox"),
            _opt("outPath", "Output Path", depends_on="advanced"),
            _opt("noOpen", "Don't Open Automatically", "checkbox", depends_on="advanced"),
            KONTENT_URL,
        ],
    ),
}


def command_tokens(command: str) -> List[str]:
    return command.split()


def to_kebab(key: str) -> str:
    """environmentId -> environment-id"""
    return _UPPER_RE.sub(r"-\1", key).lower()


def render_value(value) -> str:
    """Render a scalar the way a JS CLI prints it: `true`, `1` rather than `True`, `1.0`."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def build_args(command: str, options: CommandOptions) -> List[str]:
    """
    Deterministic argv for the wrapped CLI.

    Booleans become bare flags (or nothing), lists repeat the flag per element,
    other scalars become flag/value pairs. Empty values, internal `_` keys and
    nested objects are dropped.
    """
    args = command_tokens(command)

    for key, value in options.items():
        if value is None or value == "" or key.startswith("_"):
            continue
        flag = f"--{to_kebab(key)}"

        if isinstance(value, bool):
            if value:
                args.append(flag)
        elif isinstance(value, (list, tuple)):
            for item in value:
                args.extend([flag, render_value(item)])
        elif isinstance(value, dict):
            continue
        else:
            args.extend([flag, render_value(value)])

    return args


def redact_args(argv: List[str]) -> List[str]:
    """Copy of argv safe for logs: values following `--*-key` flags are masked."""
    out: List[str] = []
    mask_next = False
    for token in argv:
        out.append("****" if mask_next else token)
        mask_next = token.startswith("--") and token.endswith("-key")
    return out
