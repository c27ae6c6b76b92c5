"""Path normalization for cross-tool correlation.

Converts tool-specific file identifiers to canonical project-relative
paths. Every tool reports locations differently (absolute paths, ``./``
prefixes, Windows separators, integer indexes into a plist file table);
after normalization two tools pointing at the same file agree on one
string.

Normalization is purely lexical: the file system is never consulted and
symlinks are never followed.
"""

import posixpath
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from .exceptions import InvalidPathError

_DRIVE_RE = re.compile(r"^[A-Za-z]:/")
_MULTI_SLASH_RE = re.compile(r"/{2,}")

UNKNOWN_PREFIX = "unknown:"


@dataclass(frozen=True)
class NormalizedPath:
    """Result of normalizing one tool identifier."""

    canonical_path: str
    confidence: float
    original: str
    unresolved: bool = False
    external_to_project: bool = False

    def flags(self) -> dict[str, bool]:
        """Metadata flags worth recording on the entity."""
        flags: dict[str, bool] = {}
        if self.unresolved:
            flags["unresolved"] = True
        if self.external_to_project:
            flags["externalToProject"] = True
        return flags


def _is_absolute(path: str) -> bool:
    return path.startswith("/") or bool(_DRIVE_RE.match(path))


def _clean(path: str) -> str:
    path = path.replace("\\", "/")
    path = _MULTI_SLASH_RE.sub("/", path)
    while path.startswith("./"):
        path = path[2:]
    if path not in ("/", "") and path.endswith("/"):
        path = path.rstrip("/")
    return path


class PathNormalizer:
    """Map arbitrary tool-supplied identifiers to canonical paths.

    Args:
        project_root: Absolute path of the analyzed project
        case_insensitive: Lower-case canonical paths (for projects living on
            case-insensitive file systems)
    """

    def __init__(self, project_root: str, case_insensitive: bool = False) -> None:
        root = _clean(str(project_root))
        if root != "/":
            root = posixpath.normpath(root)
        self.project_root = root
        self.case_insensitive = case_insensitive

    def _relative_to_root(self, path: str) -> str | None:
        root = self.project_root
        candidate, base = path, root
        if self.case_insensitive:
            candidate, base = path.lower(), root.lower()
        if candidate == base:
            return "."
        prefix = base if base.endswith("/") else base + "/"
        if candidate.startswith(prefix):
            return path[len(prefix):]
        return None

    def normalize(
        self,
        identifier: object,
        tool_name: str = "unknown",
        file_table: Sequence[str] | Mapping[object, str] | None = None,
    ) -> NormalizedPath:
        """Normalize one identifier.

        Args:
            identifier: Path string, or an integer/opaque handle into file_table
            tool_name: Tool that produced the identifier
            file_table: Side table resolving symbolic handles (e.g. the
                ``files`` array of a clang plist)

        Raises:
            InvalidPathError: If identifier is neither a string nor a handle,
                or is an empty string
        """
        if isinstance(identifier, bool):
            raise InvalidPathError(f"Invalid path from {tool_name}: {identifier!r}")

        if isinstance(identifier, int):
            resolved = self._resolve_handle(identifier, file_table)
            if resolved is None:
                return NormalizedPath(
                    canonical_path=f"{UNKNOWN_PREFIX}{tool_name}:{identifier}",
                    confidence=0.0,
                    original=str(identifier),
                    unresolved=True,
                )
            result = self.normalize(resolved, tool_name)
            return NormalizedPath(
                canonical_path=result.canonical_path,
                confidence=result.confidence,
                original=str(identifier),
                unresolved=result.unresolved,
                external_to_project=result.external_to_project,
            )

        if not isinstance(identifier, str):
            raise InvalidPathError(
                f"Invalid path from {tool_name}: expected str, got {type(identifier).__name__}"
            )
        if not identifier.strip():
            raise InvalidPathError(f"Invalid path from {tool_name}: empty identifier")

        original = identifier

        # Already-unresolved handles pass through untouched (idempotency)
        if identifier.startswith(UNKNOWN_PREFIX):
            return NormalizedPath(identifier, 0.0, original, unresolved=True)

        path = _clean(identifier.strip())
        confidence = 1.0
        external = False

        if _is_absolute(path):
            relative = self._relative_to_root(posixpath.normpath(path))
            if relative is None:
                path = posixpath.normpath(path)
                external = True
                confidence = 0.5
            else:
                path = relative
        elif path.startswith("../") or path == "..":
            external = True
            confidence = 0.8

        if not external:
            path = posixpath.normpath(path) if path else "."
            if path.startswith("../") or path == "..":
                external = True
                confidence = 0.8

        path = _clean(path)
        if self.case_insensitive:
            path = path.lower()

        return NormalizedPath(
            canonical_path=path or ".",
            confidence=confidence,
            original=original,
            external_to_project=external,
        )

    @staticmethod
    def _resolve_handle(
        handle: int, file_table: Sequence[str] | Mapping[object, str] | None
    ) -> str | None:
        if file_table is None:
            return None
        if isinstance(file_table, Mapping):
            value = file_table.get(handle)
        elif 0 <= handle < len(file_table):
            value = file_table[handle]
        else:
            value = None
        return value if isinstance(value, str) and value.strip() else None

    def canonical(self, identifier: object, tool_name: str = "unknown") -> str:
        """Shorthand returning only the canonical path."""
        return self.normalize(identifier, tool_name).canonical_path
