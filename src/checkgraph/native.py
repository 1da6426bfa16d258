"""Native compilation of type-checked modules into extension modules.

A compiled node forms one group from its own sources. The checker emits a
translation unit and two headers for the group; those are compiled and
linked into one shared library. Every source in the group then gets a small
shim extension, expanded from a template, that imports the group library and
forwards module initialization to it.
"""

from __future__ import annotations

import posixpath
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from checkgraph.actions import (
    Action,
    CcCompileAction,
    CcLinkAction,
    ExpandTemplateAction,
    RunAction,
)
from checkgraph.artifacts import Artifact, Label, SourceFile
from checkgraph.cc_context import CompilationContext, merge_compilation_contexts
from checkgraph.config import CheckgraphConfig
from checkgraph.state import CompiledGroup
from checkgraph.toolchain import EXTENSION_ABI_TAG, ResolvedInterpreter
from serde_msgspec import StructBaseHotPath

NATIVE_COMPILE_FLAGS: tuple[str, ...] = (
    "-Wno-unused-function",
    "-Wno-unused-label",
    "-Wno-unreachable-code",
    "-Wno-unused-variable",
    "-Wno-unused-but-set-variable",
)
GROUP_LIBRARY_SUFFIX = "__mypyc"
SHIM_SUBSTITUTION_KEYS: tuple[str, ...] = ("{modname}", "{libname}", "{full_modname}")

_NAMESPACE_SEPARATOR = "___"
_ESCAPED_SEPARATOR = "___3_"


def group_name_for(label: Label) -> str:
    """Return the dotted group name for a node label.

    Returns
    -------
    str
        ``//a/b:c`` becomes ``a.b.c``.
    """
    return str(label).lstrip("/").replace("/", ".").replace(":", ".")


def group_libname(group_name: str) -> str:
    """Return the importable module name of a group library."""
    return group_name + GROUP_LIBRARY_SUFFIX


def group_short_name(group_name: str) -> str:
    """Return the last dotted segment of a group name."""
    return group_name.rsplit(".", 1)[-1]


def mangle_module_name(full_modname: str) -> str:
    """Return the exported C name for a fully qualified module.

    Literal ``___`` runs are escaped first so that the ``.`` separator
    encoding cannot collide with them.

    Returns
    -------
    str
        Mangled module name.
    """
    return full_modname.replace(_NAMESPACE_SEPARATOR, _ESCAPED_SEPARATOR).replace(
        ".", _NAMESPACE_SEPARATOR
    )


def extension_file_name(module_name: str) -> str:
    """Return the file name of an importable extension module."""
    return f"{module_name}.{EXTENSION_ABI_TAG}.so"


class GroupFiles(StructBaseHotPath, frozen=True):
    """Native files the checker generates for one group."""

    internal_header: Artifact
    external_header: Artifact
    source: Artifact

    def all(self) -> tuple[Artifact, ...]:
        """Return every generated file."""
        return (self.internal_header, self.external_header, self.source)


def declare_group_files(label: Label, short_name: str, *, output_root: str) -> GroupFiles:
    """Declare the generated translation unit and headers for a group.

    Returns
    -------
    GroupFiles
        ``__native_internal_S.h``, ``__native_S.h`` and ``__native_S.c``.
    """
    return GroupFiles(
        internal_header=label.declare(f"__native_internal_{short_name}.h", output_root=output_root),
        external_header=label.declare(f"__native_{short_name}.h", output_root=output_root),
        source=label.declare(f"__native_{short_name}.c", output_root=output_root),
    )


def interpreter_context(interpreter: ResolvedInterpreter) -> CompilationContext:
    """Return the compilation context exposing the interpreter headers.

    Returns
    -------
    CompilationContext
        Header artifacts plus their directories as system includes.
    """
    headers = frozenset(Artifact(root="", short_path=path) for path in interpreter.headers)
    system_includes = frozenset(posixpath.dirname(path) for path in interpreter.headers)
    return CompilationContext(headers=headers, system_includes=system_includes - {""})


@dataclass(frozen=True)
class ExtensionModule:
    """One linked extension module and the actions producing it."""

    module: Artifact
    context: CompilationContext
    actions: tuple[Action, ...]


@dataclass(frozen=True)
class NativeToolchain:
    """Compiler, runtime and interpreter used for native builds."""

    config: CheckgraphConfig
    interpreter: ResolvedInterpreter

    @classmethod
    def from_config(cls, config: CheckgraphConfig) -> NativeToolchain:
        """Resolve the native toolchain from configuration.

        Returns
        -------
        NativeToolchain
            Toolchain bound to the extension interpreter.
        """
        return cls(config=config, interpreter=config.native_interpreter())

    def base_context(self) -> CompilationContext:
        """Return the runtime plus interpreter compilation context."""
        return merge_compilation_contexts(
            (self.config.runtime_context(), interpreter_context(self.interpreter))
        )


def build_extension_module(
    label: Label,
    module_name: str,
    c_source: Artifact,
    *,
    toolchain: NativeToolchain,
    public_hdrs: Sequence[Artifact] = (),
    private_hdrs: Sequence[Artifact] = (),
    contexts: Iterable[CompilationContext | None] = (),
    link_against: Sequence[Artifact] = (),
) -> ExtensionModule:
    """Describe compile, link and rename steps for one extension module.

    The link step names its output ``lib<file>``, which is not importable,
    so the result is copied to the final extension file name.

    Returns
    -------
    ExtensionModule
        Final module artifact, the context it exports and its actions.
    """
    config = toolchain.config
    output_root = config.output_root
    owner = str(label)
    context = merge_compilation_contexts((toolchain.base_context(), *contexts))
    object_name = posixpath.splitext(posixpath.basename(c_source.short_path))[0]
    obj = label.declare(f"_objs/{module_name}/{object_name}.o", output_root=output_root)
    headers = sorted(
        {artifact.path for artifact in (*public_hdrs, *private_hdrs, *context.headers)}
    )
    compile_action = CcCompileAction(
        owner=owner,
        mnemonic="CppCompile",
        inputs=(c_source.path, *headers),
        outputs=(obj.path,),
        progress_message=f"Compiling {c_source.path}",
        compiler=config.cc_compiler,
        source=c_source.path,
        output=obj.path,
        flags=(*NATIVE_COMPILE_FLAGS, f"-I{c_source.root}", *context.compile_flags()),
    )
    file_name = extension_file_name(module_name)
    linked = label.declare(f"lib{file_name}", output_root=output_root)
    libraries = tuple(artifact.path for artifact in link_against)
    link_action = CcLinkAction(
        owner=owner,
        mnemonic="CppLink",
        inputs=(obj.path, *libraries),
        outputs=(linked.path,),
        progress_message=f"Linking {linked.path}",
        linker=config.cc_compiler,
        objects=(obj.path,),
        output=linked.path,
        libraries=(*libraries, *config.mypyc_runtime.libraries),
    )
    module = label.declare(file_name, output_root=output_root)
    copy_action = RunAction(
        owner=owner,
        mnemonic="CopyExtension",
        inputs=(linked.path,),
        outputs=(module.path,),
        executable="cp",
        arguments=(linked.path, module.path),
    )
    exported = merge_compilation_contexts(
        (
            context,
            CompilationContext(
                headers=frozenset(public_hdrs),
                includes=frozenset({c_source.root}),
            ),
        )
    )
    return ExtensionModule(
        module=module,
        context=exported,
        actions=(compile_action, link_action, copy_action),
    )


def shim_substitutions(source: SourceFile, libname: str) -> tuple[tuple[str, str], ...]:
    """Return template substitutions for the shim of one source.

    Returns
    -------
    tuple[tuple[str, str], ...]
        Values for ``{modname}``, ``{libname}`` and ``{full_modname}``.
    """
    full_modname = source.short_base.replace("/", ".")
    modname = full_modname.rsplit(".", 1)[-1]
    values = (modname, libname, mangle_module_name(full_modname))
    return tuple(zip(SHIM_SUBSTITUTION_KEYS, values, strict=True))


@dataclass(frozen=True)
class NativeBuild:
    """Everything a compiled node declares for its group."""

    group: CompiledGroup
    generated: GroupFiles
    group_library: Artifact
    extension_modules: tuple[Artifact, ...]
    context: CompilationContext
    actions: tuple[Action, ...]


def plan_native_build(
    label: Label,
    own_sources: Sequence[SourceFile],
    *,
    toolchain: NativeToolchain,
    dep_contexts: Iterable[CompilationContext | None],
) -> NativeBuild:
    """Describe the group library and per-module shims for a compiled node.

    Returns
    -------
    NativeBuild
        Group descriptor, generated files, extension modules, exported
        compilation context and the actions producing them.
    """
    config = toolchain.config
    output_root = config.output_root
    group_name = group_name_for(label)
    libname = group_libname(group_name)
    short_name = group_short_name(group_name)
    generated = declare_group_files(label, short_name, output_root=output_root)
    group_module = build_extension_module(
        label,
        short_name + GROUP_LIBRARY_SUFFIX,
        generated.source,
        toolchain=toolchain,
        public_hdrs=(generated.external_header,),
        private_hdrs=(generated.internal_header,),
        contexts=dep_contexts,
    )
    actions: list[Action] = list(group_module.actions)
    modules: list[Artifact] = [group_module.module]
    template = config.shim_template()
    for source in own_sources:
        substitutions = shim_substitutions(source, libname)
        modname = substitutions[0][1]
        shim_source = label.declare(f"{modname}.c", output_root=output_root)
        actions.append(
            ExpandTemplateAction(
                owner=str(label),
                mnemonic="ExpandTemplate",
                inputs=(template,),
                outputs=(shim_source.path,),
                template=template,
                output=shim_source.path,
                substitutions=substitutions,
            )
        )
        shim = build_extension_module(
            label,
            modname,
            shim_source,
            toolchain=toolchain,
            link_against=(group_module.module,),
        )
        actions.extend(shim.actions)
        modules.append(shim.module)
    return NativeBuild(
        group=CompiledGroup(name=group_name, sources=tuple(own_sources)),
        generated=generated,
        group_library=group_module.module,
        extension_modules=tuple(modules),
        context=group_module.context,
        actions=tuple(actions),
    )


__all__ = [
    "GROUP_LIBRARY_SUFFIX",
    "NATIVE_COMPILE_FLAGS",
    "SHIM_SUBSTITUTION_KEYS",
    "ExtensionModule",
    "GroupFiles",
    "NativeBuild",
    "NativeToolchain",
    "build_extension_module",
    "declare_group_files",
    "extension_file_name",
    "group_libname",
    "group_name_for",
    "group_short_name",
    "interpreter_context",
    "mangle_module_name",
    "plan_native_build",
    "shim_substitutions",
]
