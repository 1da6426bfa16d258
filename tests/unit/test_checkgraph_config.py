"""Tests for configuration decoding, discovery and interpreter resolution."""

from __future__ import annotations

from pathlib import Path

import pytest

from checkgraph.config import (
    OUTPUT_ROOT_ENV,
    CheckgraphConfig,
    decode_config,
    load_config,
)
from checkgraph.errors import CheckgraphConfigurationError
from checkgraph.toolchain import (
    BuildTag,
    InterpreterSpec,
    default_build_tag,
    resolve_interpreter,
    validate_python_version,
)


def test_interpreter_requires_exe_or_exe_file() -> None:
    """Reject an interpreter without a path."""
    with pytest.raises(CheckgraphConfigurationError, match="exe or exe_file is mandatory"):
        resolve_interpreter(InterpreterSpec(build_tag=BuildTag.CPYTHON_37))


def test_exe_file_resolves_under_runfiles() -> None:
    """Resolve a workspace interpreter relative to the runfiles tree."""
    resolved = resolve_interpreter(
        InterpreterSpec(build_tag=BuildTag.CPYTHON_27, exe_file="thirdparty/cpython/python")
    )
    assert resolved.path == "thirdparty/cpython/python"
    assert resolved.runfiles_path == "$RUNFILES/thirdparty/cpython/python"


def test_default_build_tag() -> None:
    """Pick the Python 3 tag only when Python 2 is not required."""
    assert default_build_tag(python2_compatible=False) is BuildTag.CPYTHON_37
    assert default_build_tag(python2_compatible=True) is BuildTag.CPYTHON_27


def test_unsupported_python_version() -> None:
    """Reject versions outside the supported pair."""
    with pytest.raises(CheckgraphConfigurationError, match="Unsupported python_version"):
        validate_python_version("3.8")


def test_decode_config_accepts_interpreter_aliases() -> None:
    """Map interpreter target aliases onto build tags."""
    config = decode_config(
        {
            "interpreters": [
                {"build_tag": "//thirdparty/cpython:drte-interpreter-37", "exe": "/usr/bin/py3"}
            ],
            "typeshed": {"3.7": "//typeshed"},
        },
        location="test",
    )
    assert config.interpreters[0].build_tag is BuildTag.CPYTHON_37
    assert config.typeshed == {"3.7": "//typeshed:typeshed"}
    assert config.native_interpreter().path == "/usr/bin/py3"


def test_decode_config_rejects_missing_exe() -> None:
    """Validate interpreters while decoding."""
    with pytest.raises(CheckgraphConfigurationError, match="mandatory"):
        decode_config({"interpreters": [{"build_tag": "cpython-37"}]}, location="test")


def test_decode_config_rejects_unknown_fields() -> None:
    """Reject unknown configuration keys."""
    with pytest.raises(CheckgraphConfigurationError, match="Config validation failed"):
        decode_config({"mypy_binary": "x"}, location="test")


def test_decode_config_ignores_cli_table() -> None:
    """Leave the command-line defaults table to the CLI."""
    config = decode_config({"cli": {"plan": {"output_format": "json"}}}, location="test")
    assert config == decode_config({}, location="test")


def test_native_interpreter_requires_registration() -> None:
    """Fail when no interpreter exists for the extension build tag."""
    with pytest.raises(CheckgraphConfigurationError, match="No interpreter registered"):
        CheckgraphConfig().native_interpreter()


def test_load_config_from_checkgraph_toml(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Discover checkgraph.toml from a nested directory."""
    monkeypatch.delenv(OUTPUT_ROOT_ENV, raising=False)
    (tmp_path / "checkgraph.toml").write_text('output_root = "out"\n', encoding="utf-8")
    nested = tmp_path / "a" / "b"
    nested.mkdir(parents=True)
    assert load_config(start=nested).output_root == "out"


def test_load_config_from_pyproject(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Read the tool table of pyproject.toml when no checkgraph.toml exists."""
    monkeypatch.delenv(OUTPUT_ROOT_ENV, raising=False)
    (tmp_path / "pyproject.toml").write_text(
        '[tool.checkgraph]\nmypy_ini = "setup.cfg"\n', encoding="utf-8"
    )
    assert load_config(start=tmp_path).mypy_ini == "setup.cfg"


def test_explicit_config_must_exist(tmp_path: Path) -> None:
    """Reject an explicit path that does not exist."""
    with pytest.raises(CheckgraphConfigurationError, match="not found"):
        load_config(str(tmp_path / "missing.toml"))


def test_output_root_env_override(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Apply the output root from the environment last."""
    path = tmp_path / "custom.toml"
    path.write_text('output_root = "out"\n', encoding="utf-8")
    monkeypatch.setenv(OUTPUT_ROOT_ENV, "env-out/")
    assert load_config(str(path)).output_root == "env-out"


def test_fingerprint_tracks_configuration() -> None:
    """Change the fingerprint when the configuration changes."""
    assert CheckgraphConfig().fingerprint() == CheckgraphConfig().fingerprint()
    assert CheckgraphConfig().fingerprint() != CheckgraphConfig(mypy_ini="x").fingerprint()
