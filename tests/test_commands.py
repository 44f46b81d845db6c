from cli_bridge.commands import COMMANDS, build_args, redact_args, to_kebab
from cli_bridge.validation import COMMAND_RULES

from conftest import API_KEY, ENV_ID

SHELL_METACHARACTERS = set(";|&$`<>")


def test_to_kebab():
    assert to_kebab("environmentId") == "environment-id"
    assert to_kebab("excludeInactiveLanguages") == "exclude-inactive-languages"
    assert to_kebab("include") == "include"


def test_backup_argv():
    argv = build_args("environment backup", {"environmentId": ENV_ID, "apiKey": API_KEY})
    assert argv == ["environment", "backup", "--environment-id", ENV_ID, "--api-key", API_KEY]


def test_booleans_arrays_and_scalars():
    argv = build_args("sync run", {
        "entities": ["contentTypes", "taxonomies", "languages"],
        "skipConfirmation": True,
        "advanced": False,
        "retries": 3,
    })
    assert argv == [
        "sync", "run",
        "--entities", "contentTypes",
        "--entities", "taxonomies",
        "--entities", "languages",
        "--skip-confirmation",
        "--retries", "3",
    ]


def test_array_of_n_yields_2n_tokens_and_false_yields_none():
    for n in range(4):
        argv = build_args("sync snapshot", {"entities": [f"e{i}" for i in range(n)], "noOpen": False})
        assert len(argv) == 2 + 2 * n


def test_scalars_render_like_the_cli_expects():
    argv = build_args("sync run", {"flags": [True, False, 2.0], "ratio": 1.0, "threshold": 0.25})
    assert argv == [
        "sync", "run",
        "--flags", "true", "--flags", "false", "--flags", "2",
        "--ratio", "1",
        "--threshold", "0.25",
    ]


def test_skips_empty_internal_and_object_values():
    argv = build_args("environment clean", {
        "fileName": "",
        "kontentUrl": None,
        "_source": "form",
        "extra": {"nested": True},
        "skipWarning": True,
    })
    assert argv == ["environment", "clean", "--skip-warning"]


def test_deterministic_and_never_shell_joined():
    options = {"fileName": "backup; rm -rf / && echo $HOME", "environmentId": ENV_ID}
    first = build_args("environment backup", options)
    assert first == build_args("environment backup", dict(options))
    # The hostile value stays one argv element; nothing is split or expanded
    assert first[-3] == "backup; rm -rf / && echo $HOME"
    assert not any(SHELL_METACHARACTERS & set(tok) for tok in first if tok.startswith("--"))


def test_three_token_command_is_seeded_in_order():
    assert build_args("migrate-content snapshot run", {})[:3] == ["migrate-content", "snapshot", "run"]


def test_redact_args_masks_key_values():
    argv = build_args("sync run", {"targetApiKey": API_KEY, "secureAssetDeliveryKey": "s" * 12, "folderName": "f"})
    assert redact_args(argv) == [
        "sync", "run",
        "--target-api-key", "****",
        "--secure-asset-delivery-key", "****",
        "--folder-name", "f",
    ]


def test_every_defined_command_has_rules():
    assert set(COMMANDS) == set(COMMAND_RULES)
    for definition in COMMANDS.values():
        ids = [opt.id for opt in definition.options]
        assert len(ids) == len(set(ids))
