"""
layered-config — unit tests for the public loading entry point

File: tests/unit/loader/test_loader.py

Purpose
- Validate ``load()`` end to end: materialization, the four precedence layers,
  validation and the optional show / write-effective actions.

What this test file should cover
- Per-leaf precedence CLI > env > file > defaults.
- Aggregated failures (missing required fields, env parse errors).
- Dataclass schemas and ``to_model``.
- Default config-file path selection and the redacted JSON dump.

Functional requirements
- Offline; every test passes an explicit environment mapping.

Non-functional requirements
- Deterministic and non-flaky.
"""

from __future__ import annotations

import argparse
import json
from dataclasses import dataclass
from pathlib import Path

import pytest

from layered_config.errors import (
    ConfigIoError,
    ConfigValidationError,
    EnvParseError,
    MissingRequiredFieldError,
)
from layered_config.loader import (
    EFFECTIVE_CONFIG_BANNER,
    default_config_path,
    dump_effective_config,
    load,
    show_effective_config,
)
from layered_config.materializer import load_document
from layered_config.schema import FieldDescriptor, SchemaRegistry, SemanticType, setting
from layered_config.values import Provenance


def _schema() -> SchemaRegistry:
    return SchemaRegistry(
        [
            FieldDescriptor(
                "port",
                SemanticType.INTEGER,
                default=8080,
                doc="Listening port.",
                env_key="PORT",
                cli_overridable=True,
                minimum=1,
                maximum=65535,
            ),
            FieldDescriptor("log_level", SemanticType.STRING, default="info", doc="Log level."),
            FieldDescriptor(
                "api_token",
                SemanticType.STRING,
                default="dev-token",
                doc="API token.",
                env_key="API_TOKEN",
                sensitive=True,
            ),
        ]
    )


@dataclass
class ServerSettings:
    """HTTP server settings."""

    host: str = setting("127.0.0.1", doc="Bind address.")
    port: int = setting(8080, doc="Listening port.", env="SERVER_PORT", cli=True)
    tags: tuple[str, ...] = setting(default_factory=tuple, doc="Instance tags.")


def test_precedence_cli_over_env_over_file_over_default(tmp_path: Path) -> None:
    path = tmp_path / "app.config.yaml"
    path.write_text("port: 9090\n", encoding="utf-8")

    effective = load(
        _schema(),
        path,
        environ={"PORT": "7070"},
        cli_overrides={"port": 6060},
    )

    assert effective["port"] == 6060
    assert effective.provenance("port") is Provenance.CLI
    assert effective.origin("port") == "cli:port"
    assert effective["log_level"] == "info"
    assert effective.provenance("log_level") is Provenance.DEFAULT


def test_env_wins_over_file_when_cli_is_silent(tmp_path: Path) -> None:
    path = tmp_path / "app.config.yaml"
    path.write_text("port: 9090\n", encoding="utf-8")

    from_file = load(_schema(), path, environ={})
    from_env = load(_schema(), path, environ={"PORT": "7070"})

    assert from_file["port"] == 9090
    assert from_file.provenance("port") is Provenance.FILE
    assert from_file.origin("port") == str(path)
    assert from_env["port"] == 7070
    assert from_env.origin("port") == "PORT"


def test_absent_file_is_created_and_defaults_resolve(tmp_path: Path) -> None:
    path = tmp_path / "app.config.toml"

    effective = load(_schema(), path, environ={})

    assert path.exists()
    assert load_document(path) == {"port": 8080, "log_level": "info", "api_token": "dev-token"}
    assert effective.as_dict() == {"port": 8080, "log_level": "info", "api_token": "dev-token"}
    assert set(effective.provenance_map().values()) == {"default"}


def test_create_missing_false_reads_nothing_and_writes_nothing(tmp_path: Path) -> None:
    path = tmp_path / "app.config.yaml"

    effective = load(_schema(), path, environ={}, create_missing=False)

    assert not path.exists()
    assert effective["port"] == 8080


def test_cli_overrides_accept_argparse_namespace(tmp_path: Path) -> None:
    namespace = argparse.Namespace(port=5050, log_level=None)

    effective = load(_schema(), tmp_path / "app.config.yaml", environ={}, cli_overrides=namespace)

    assert effective["port"] == 5050
    assert effective.provenance("log_level") is Provenance.DEFAULT


def test_missing_required_fields_are_reported_together(tmp_path: Path) -> None:
    schema = SchemaRegistry(
        [
            FieldDescriptor("token", SemanticType.STRING, doc="API token."),
            FieldDescriptor("region", SemanticType.STRING, doc="Deployment region."),
            FieldDescriptor("port", SemanticType.INTEGER, default=8080),
        ]
    )
    path = tmp_path / "app.config.yaml"

    with pytest.raises(MissingRequiredFieldError) as excinfo:
        load(schema, path, environ={})

    assert excinfo.value.missing == ("token", "region")
    text = path.read_text(encoding="utf-8")
    assert "# token: <required>" in text
    assert "# region: <required>" in text


def test_env_parse_errors_mask_sensitive_values(tmp_path: Path) -> None:
    schema = SchemaRegistry(
        [
            FieldDescriptor("port", SemanticType.INTEGER, default=8080, env_key="PORT"),
            FieldDescriptor(
                "pin", SemanticType.INTEGER, default=0, env_key="PIN", sensitive=True
            ),
        ]
    )

    with pytest.raises(EnvParseError) as excinfo:
        load(schema, tmp_path / "app.config.yaml", environ={"PORT": "http", "PIN": "12x4"})

    keys = [failure.env_key for failure in excinfo.value.failures]
    assert keys == ["PORT", "PIN"]
    assert "12x4" not in str(excinfo.value)
    assert "http" in str(excinfo.value)


def test_validator_issues_surface_after_resolution(tmp_path: Path) -> None:
    def no_debug_on_privileged_port(config):
        if config["port"] < 1024 and config["log_level"] == "debug":
            yield ("port", "privileged ports cannot run with debug logging")

    path = tmp_path / "app.config.yaml"
    path.write_text("port: 80\nlog_level: debug\n", encoding="utf-8")

    with pytest.raises(ConfigValidationError) as excinfo:
        load(_schema(), path, environ={}, validator=no_debug_on_privileged_port)

    assert [issue.path for issue in excinfo.value.issues] == ["port"]


def test_dataclass_schema_loads_and_builds_model(tmp_path: Path) -> None:
    path = tmp_path / "server.config.yaml"

    effective = load(
        ServerSettings,
        path,
        environ={"SERVER_PORT": "9000"},
        cli_overrides={"tags": ["a", "b"]},
    )

    # tags is not CLI-overridable, so the override is ignored.
    assert effective["tags"] == ()
    model = effective.to_model()
    assert model == ServerSettings(host="127.0.0.1", port=9000, tags=())


def test_show_effective_prints_banner_with_redacted_values(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    load(_schema(), tmp_path / "app.config.yaml", environ={}, show_effective=True)

    err = capsys.readouterr().err
    assert err.startswith(EFFECTIVE_CONFIG_BANNER)
    assert "dev-token" not in err
    assert "***REDACTED***" in err
    payload = json.loads(err[len(EFFECTIVE_CONFIG_BANNER) :])
    assert payload["port"] == 8080


def test_show_effective_config_writes_to_given_stream(tmp_path: Path) -> None:
    effective = load(_schema(), tmp_path / "app.config.yaml", environ={})

    class _Sink:
        def __init__(self) -> None:
            self.parts: list[str] = []

        def write(self, text: str) -> int:
            self.parts.append(text)
            return len(text)

        def flush(self) -> None:
            pass

    sink = _Sink()
    show_effective_config(effective, sink)  # type: ignore[arg-type]

    assert "".join(sink.parts).endswith("\n\n")


def test_write_effective_keeps_backup(tmp_path: Path) -> None:
    path = tmp_path / "app.config.yaml"
    path.write_text("port: 9090\n", encoding="utf-8")

    load(_schema(), path, environ={"PORT": "7070"}, write_effective=True)

    backup = tmp_path / "app.config.yaml~"
    assert backup.exists()
    assert "port: 9090" in backup.read_text(encoding="utf-8")
    assert load_document(path) == {"port": 7070, "log_level": "info", "api_token": "dev-token"}
    assert "Previous file saved as app.config.yaml~." in path.read_text(encoding="utf-8")


def test_dump_effective_config_is_deterministic_and_redacted(tmp_path: Path) -> None:
    effective = load(_schema(), tmp_path / "app.config.yaml", environ={})

    dumped = dump_effective_config(effective)

    assert dumped == '{"api_token":"***REDACTED***","log_level":"info","port":8080}'
    assert json.loads(dump_effective_config(effective, redact=False))["api_token"] == "dev-token"


def test_default_config_path_prefers_existing_candidate(tmp_path: Path) -> None:
    program = str(tmp_path / "myapp")

    assert default_config_path(program) == tmp_path / "myapp.config.yaml"

    (tmp_path / "myapp.config.toml").write_text("", encoding="utf-8")
    assert default_config_path(program) == tmp_path / "myapp.config.toml"


def test_default_config_path_rejects_missing_program_name() -> None:
    with pytest.raises(ConfigIoError):
        default_config_path("-c")
    with pytest.raises(ValueError, match="suffix"):
        default_config_path("myapp", suffixes=())


def test_load_uses_program_name_when_path_is_omitted(tmp_path: Path) -> None:
    effective = load(_schema(), program_name=str(tmp_path / "svc"), environ={})

    assert (tmp_path / "svc.config.yaml").exists()
    assert effective["port"] == 8080


def test_file_with_required_only_section_loads_again(tmp_path: Path) -> None:
    database = SchemaRegistry(
        [
            FieldDescriptor(
                "password",
                SemanticType.STRING,
                doc="Database password.",
                env_key="DB_PASSWORD",
                sensitive=True,
            )
        ]
    )
    schema = SchemaRegistry(
        [
            FieldDescriptor("port", SemanticType.INTEGER, default=8080),
            FieldDescriptor("db", SemanticType.OBJECT, fields=database),
        ]
    )
    path = tmp_path / "app.config.yaml"

    first = load(schema, path, environ={"DB_PASSWORD": "s3cret"})
    second = load(schema, path, environ={"DB_PASSWORD": "s3cret"})

    assert first == second
    assert second["db.password"] == "s3cret"
    assert second.provenance("db.password") is Provenance.ENV
