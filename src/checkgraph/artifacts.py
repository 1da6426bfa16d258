"""File identities, declared artifacts, and target labels."""

from __future__ import annotations

from checkgraph.errors import CheckgraphConfigurationError
from serde_msgspec import StructBaseHotPath, StructBaseStrict

STUB_SUFFIX = "i"


class SourceFile(StructBaseHotPath, frozen=True):
    """Source identity: execution path plus an optional content handle.

    ``path`` is the execution path (it includes ``root`` for generated files);
    ``root`` is the output root the file lives under, empty for checked-in
    sources.
    """

    path: str
    root: str = ""
    digest: str | None = None

    @property
    def is_stub(self) -> bool:
        """Return True for type-stub sources."""
        return self.path.endswith(".py" + STUB_SUFFIX)

    @property
    def short_path(self) -> str:
        """Return the path relative to ``root``."""
        if self.root and self.path.startswith(self.root + "/"):
            return self.path[len(self.root) + 1 :]
        return self.path

    @property
    def short_base(self) -> str:
        """Return the root-relative path with its extension stripped."""
        short_path = self.short_path
        return short_path[: short_path.rindex(".")]

    @property
    def stub_path(self) -> str:
        """Return the path of the stub that would override this source."""
        return self.path + STUB_SUFFIX


class Artifact(StructBaseHotPath, frozen=True):
    """Declared output artifact produced by some action."""

    root: str
    short_path: str

    @property
    def path(self) -> str:
        """Return the execution path of the artifact."""
        if not self.root:
            return self.short_path
        return f"{self.root}/{self.short_path}"


class Label(StructBaseStrict, frozen=True):
    """Parsed build label of the form ``//package/path:name``."""

    package: str
    name: str

    @classmethod
    def parse(cls, value: str) -> Label:
        """Parse a label string.

        ``//pkg/sub`` is shorthand for ``//pkg/sub:sub``.

        Returns
        -------
        Label
            Parsed label.

        Raises
        ------
        CheckgraphConfigurationError
            Raised when the label is not absolute or has an empty name.
        """
        if not value.startswith("//"):
            msg = f"Expected an absolute label starting with '//', got {value!r}."
            raise CheckgraphConfigurationError(msg)
        body = value[2:]
        if ":" in body:
            package, name = body.split(":", 1)
        else:
            package = body
            name = body.rsplit("/", 1)[-1]
        if not name:
            msg = f"Label {value!r} has an empty target name."
            raise CheckgraphConfigurationError(msg)
        return cls(package=package, name=name)

    def __str__(self) -> str:
        return f"//{self.package}:{self.name}"

    def declare(self, filename: str, *, output_root: str) -> Artifact:
        """Declare an artifact in this label's package output directory.

        Returns
        -------
        Artifact
            Artifact rooted under ``output_root``.
        """
        short_path = f"{self.package}/{filename}" if self.package else filename
        return Artifact(root=output_root, short_path=short_path)


def canonical_label(value: str) -> str:
    """Return the canonical string form of a label.

    Returns
    -------
    str
        Label rendered as ``//package:name``.
    """
    return str(Label.parse(value))


__all__ = ["STUB_SUFFIX", "Artifact", "Label", "SourceFile", "canonical_label"]
