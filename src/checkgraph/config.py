"""Checkgraph configuration: external artifacts, toolchains and defaults."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import cast

import msgspec

from checkgraph.artifacts import Artifact, canonical_label
from checkgraph.cc_context import CompilationContext
from checkgraph.errors import CheckgraphConfigurationError
from checkgraph.toolchain import (
    PY3_VERSION,
    VERSION_BUILD_TAGS,
    BuildTag,
    InterpreterSpec,
    ResolvedInterpreter,
    build_tag_for,
    resolve_interpreter,
    select_interpreter,
    validate_python_version,
)
from serde_msgspec import StructBaseStrict, convert, to_builtins, validation_error_payload
from utils.env_utils import env_value
from utils.hashing import hash_json_canonical

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "checkgraph.toml"
OUTPUT_ROOT_ENV = "CHECKGRAPH_OUTPUT_ROOT"
DEFAULT_OUTPUT_ROOT = "bazel-out/bin"
# Table holding command-line defaults, read by the CLI rather than decoded here.
CLI_DEFAULTS_KEY = "cli"

DEFAULT_PLUGINS: tuple[str, ...] = (
    "dropbox/mypy/edgestore_plugin.py",
    "dropbox/mypy/sqlmypy.py",
    "dropbox/mypy/py3safe.py",
)


def default_shim_template() -> str:
    """Return the path of the packaged per-module shim template.

    Returns
    -------
    str
        Filesystem path of ``module_shim.c.tmpl``.
    """
    return str(Path(__file__).resolve().parent / "templates" / "module_shim.c.tmpl")


class MypycRuntimeConfig(StructBaseStrict, frozen=True):
    """Headers, include paths and libraries of the native runtime."""

    headers: tuple[str, ...] = ()
    includes: tuple[str, ...] = ()
    defines: tuple[str, ...] = ()
    libraries: tuple[str, ...] = ()


class CheckgraphConfig(StructBaseStrict, frozen=True):
    """Effective configuration for graph evaluation.

    ``typeshed`` maps a Python version to the label of the stub bootstrap
    node every invoking node implicitly depends on at that version.
    """

    mypy: str = "dropbox/mypy/mypy"
    mypy_test: str = "dropbox/mypy/mypy_test"
    mypy_ini: str = "mypy.ini"
    plugins: tuple[str, ...] = DEFAULT_PLUGINS
    typeshed: dict[str, str] = msgspec.field(default_factory=dict)
    output_root: str = DEFAULT_OUTPUT_ROOT
    module_shim_template: str | None = None
    mypyc_runtime: MypycRuntimeConfig = msgspec.field(default_factory=MypycRuntimeConfig)
    interpreters: tuple[InterpreterSpec, ...] = ()
    cc_compiler: str = "cc"

    def shim_template(self) -> str:
        """Return the configured shim template or the packaged default."""
        return self.module_shim_template or default_shim_template()

    def typeshed_label(self, python_version: str) -> str | None:
        """Return the stub bootstrap label configured for a version."""
        return self.typeshed.get(python_version)

    def interpreter_map(self) -> dict[BuildTag, InterpreterSpec]:
        """Return interpreter declarations keyed by build tag.

        Returns
        -------
        dict[BuildTag, InterpreterSpec]
            Last declaration wins for repeated build tags.
        """
        return {spec.build_tag: spec for spec in self.interpreters}

    def native_interpreter(self) -> ResolvedInterpreter:
        """Return the interpreter native extensions are built against.

        Returns
        -------
        ResolvedInterpreter
            Interpreter registered for the extension build tag.
        """
        return select_interpreter(self.interpreter_map(), VERSION_BUILD_TAGS[PY3_VERSION])

    def runtime_context(self) -> CompilationContext:
        """Return the native runtime compilation context.

        Returns
        -------
        CompilationContext
            Context built from the runtime includes, headers and defines.
        """
        runtime = self.mypyc_runtime
        return CompilationContext(
            headers=frozenset(Artifact(root="", short_path=path) for path in runtime.headers),
            includes=frozenset(runtime.includes),
            defines=frozenset(runtime.defines),
        )

    def fingerprint(self) -> str:
        """Return a stable hash of the effective configuration.

        Returns
        -------
        str
            SHA-256 over the canonical JSON form.
        """
        return hash_json_canonical(to_builtins(self), str_keys=True)


def validate_config(config: CheckgraphConfig) -> CheckgraphConfig:
    """Validate cross-field configuration constraints.

    Every declared interpreter must resolve, and typeshed versions and
    labels must be well formed.

    Returns
    -------
    CheckgraphConfig
        Config with canonical typeshed labels.
    """
    for spec in config.interpreters:
        resolve_interpreter(spec)
    typeshed = {
        validate_python_version(version): canonical_label(label)
        for version, label in config.typeshed.items()
    }
    return msgspec.structs.replace(config, typeshed=typeshed)


def _normalize_interpreter(entry: object) -> object:
    if not isinstance(entry, Mapping):
        return entry
    normalized = dict(entry)
    build_tag = normalized.get("build_tag")
    if isinstance(build_tag, str):
        normalized["build_tag"] = build_tag_for(build_tag).value
    return normalized


def decode_config(payload: Mapping[str, object], *, location: str) -> CheckgraphConfig:
    """Decode and validate a configuration mapping.

    Returns
    -------
    CheckgraphConfig
        Validated configuration.

    Raises
    ------
    CheckgraphConfigurationError
        Raised when the payload does not match the configuration schema.
    """
    raw = {key: value for key, value in payload.items() if key != CLI_DEFAULTS_KEY}
    interpreters = raw.get("interpreters")
    if isinstance(interpreters, list):
        raw["interpreters"] = [_normalize_interpreter(entry) for entry in interpreters]
    try:
        config = convert(raw, target_type=CheckgraphConfig)
    except msgspec.ValidationError as exc:
        details = validation_error_payload(exc)
        msg = f"Config validation failed for {location}: {details}"
        raise CheckgraphConfigurationError(msg) from exc
    return validate_config(config)


def apply_env_overrides(config: CheckgraphConfig) -> CheckgraphConfig:
    """Apply environment variable overrides.

    Returns
    -------
    CheckgraphConfig
        Config with overrides applied.
    """
    output_root = env_value(OUTPUT_ROOT_ENV)
    if output_root is None:
        return config
    logger.debug("Using output root %s from %s.", output_root, OUTPUT_ROOT_ENV)
    return msgspec.structs.replace(config, output_root=output_root.rstrip("/"))


def _read_toml(path: Path) -> dict[str, object]:
    payload = msgspec.toml.decode(path.read_text(encoding="utf-8"), type=object, strict=True)
    if not isinstance(payload, dict):
        msg = f"Expected TOML mapping in {path}, got {type(payload).__name__}."
        raise CheckgraphConfigurationError(msg)
    return cast("dict[str, object]", payload)


def _extract_tool_config(raw: Mapping[str, object]) -> dict[str, object] | None:
    tool_section = raw.get("tool")
    if not isinstance(tool_section, dict):
        return None
    nested = tool_section.get("checkgraph")
    if not isinstance(nested, dict):
        return None
    return cast("dict[str, object]", nested)


def _find_in_parents(filename: str, *, start: Path) -> Path | None:
    path = start
    while True:
        candidate = path / filename
        if candidate.exists():
            return candidate
        if path.parent == path:
            return None
        path = path.parent


def _load_explicit(path: Path) -> CheckgraphConfig:
    if not path.exists():
        msg = f"Config file not found: {str(path)!r}."
        raise CheckgraphConfigurationError(msg)
    if path.suffix == ".json":
        try:
            raw = msgspec.json.decode(path.read_bytes(), type=dict[str, object])
        except msgspec.DecodeError as exc:
            msg = f"Config validation failed for {path}: {exc}"
            raise CheckgraphConfigurationError(msg) from exc
        return decode_config(raw, location=str(path))
    raw = _read_toml(path)
    if path.name == "pyproject.toml":
        nested = _extract_tool_config(raw)
        if nested is None:
            msg = f"Config validation failed for {path}: missing [tool.checkgraph] section."
            raise CheckgraphConfigurationError(msg)
        return decode_config(nested, location=f"{path}:tool.checkgraph")
    return decode_config(raw, location=str(path))


def load_config(config_file: str | None = None, *, start: Path | None = None) -> CheckgraphConfig:
    """Load configuration from an explicit file or the nearest config file.

    Without ``config_file`` the search walks up from ``start`` (default: the
    current directory) for ``checkgraph.toml`` and then for a
    ``[tool.checkgraph]`` table in ``pyproject.toml``. Defaults apply when
    neither exists. Environment overrides are applied last.

    Returns
    -------
    CheckgraphConfig
        Effective configuration.
    """
    if config_file is not None:
        return apply_env_overrides(_load_explicit(Path(config_file)))
    origin = start or Path.cwd()
    config: CheckgraphConfig | None = None
    checkgraph_path = _find_in_parents(CONFIG_FILENAME, start=origin)
    if checkgraph_path is not None:
        config = decode_config(_read_toml(checkgraph_path), location=str(checkgraph_path))
    else:
        pyproject_path = _find_in_parents("pyproject.toml", start=origin)
        if pyproject_path is not None:
            nested = _extract_tool_config(_read_toml(pyproject_path))
            if nested is not None:
                config = decode_config(nested, location=f"{pyproject_path}:tool.checkgraph")
    return apply_env_overrides(config or CheckgraphConfig())


__all__ = [
    "CLI_DEFAULTS_KEY",
    "CONFIG_FILENAME",
    "DEFAULT_OUTPUT_ROOT",
    "DEFAULT_PLUGINS",
    "OUTPUT_ROOT_ENV",
    "CheckgraphConfig",
    "MypycRuntimeConfig",
    "apply_env_overrides",
    "decode_config",
    "default_shim_template",
    "load_config",
    "validate_config",
]
