"""Glob expansion of cache path patterns into a workspace-relative path set."""

from __future__ import annotations

import fnmatch
import os
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

from bucketcache._errors import PathResolutionError

_MAGIC_CHARS = frozenset("*?[")


@dataclass(frozen=True)
class PathPattern:
    """One line of a path pattern string.

    Attributes:
        pattern: Glob as written, without the leading ``!``
        negate: True for exclusion lines
    """

    pattern: str
    negate: bool = False


def parse_patterns(pattern: str) -> list[PathPattern]:
    """Parse a newline-separated pattern string, keeping line order.

    Blank lines and lines starting with ``#`` are ignored; lines starting
    with ``!`` are exclusions.
    """
    patterns: list[PathPattern] = []
    for line in pattern.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("!"):
            excluded = line[1:].strip()
            if excluded:
                patterns.append(PathPattern(excluded, negate=True))
        else:
            patterns.append(PathPattern(line))
    return patterns


def _is_magic(part: str) -> bool:
    return any(c in _MAGIC_CHARS for c in part)


def _match_parts(parts: tuple[str, ...], globs: tuple[str, ...]) -> bool:
    if not globs:
        return not parts
    head, rest = globs[0], globs[1:]
    if head == "**":
        return any(_match_parts(parts[i:], rest) for i in range(len(parts) + 1))
    return (
        bool(parts)
        and fnmatch.fnmatchcase(parts[0], head)
        and _match_parts(parts[1:], rest)
    )


def _walk(root: Path) -> Iterator[Path]:
    """Yield every non-directory entry at or below root.

    Symlinks to directories are yielded as entries and never descended into.
    """
    if not os.path.lexists(root):
        return
    if root.is_symlink() or not root.is_dir():
        yield root
        return

    def _raise(error: OSError) -> None:
        raise error

    for dirpath, dirnames, filenames in os.walk(root, onerror=_raise):
        base = Path(dirpath)
        for name in filenames:
            yield base / name
        for name in dirnames:
            if (base / name).is_symlink():
                yield base / name


@dataclass(frozen=True)
class _CompiledPattern:
    """A pattern split into a literal root and the glob parts below it."""

    root: tuple[str, ...]
    globs: tuple[str, ...]
    negate: bool

    @classmethod
    def compile(cls, path_pattern: PathPattern, workspace: Path) -> _CompiledPattern:
        expanded = os.path.expanduser(path_pattern.pattern)
        relative = not os.path.isabs(expanded)
        parts = Path(os.path.normpath(os.path.join(workspace, expanded))).parts

        # Workspace parts are literal even when they look like globs.
        n = 0
        if relative:
            for part, ws_part in zip(parts, workspace.parts):
                if part != ws_part:
                    break
                n += 1
        while n < len(parts) and not _is_magic(parts[n]):
            n += 1
        return cls(parts[:n], parts[n:], path_pattern.negate)

    def candidates(self) -> Iterator[Path]:
        root = Path(*self.root)
        if self.globs:
            yield from _walk(root)
        elif os.path.lexists(root) and (root.is_symlink() or not root.is_dir()):
            yield root

    def matches(self, path: Path) -> bool:
        parts = path.parts
        n = len(self.root)
        return parts[:n] == self.root and _match_parts(parts[n:], self.globs)


def _selected(path: Path, patterns: list[_CompiledPattern]) -> bool:
    # Patterns apply in order; the last one matching the path decides.
    selected = False
    for pattern in patterns:
        if pattern.matches(path):
            selected = not pattern.negate
    return selected


def resolve_paths(pattern: str, workspace: Path) -> tuple[str, ...]:
    """Expand glob pattern(s) into the sorted set of matched file paths.

    Only non-directory entries are returned. A matched directory does not
    pull in its descendants; ``dist/**`` selects everything below ``dist``
    because the pattern itself matches those entries. Symlinks to
    directories are returned as single entries and never followed, so link
    cycles cannot repeat the tree.

    Patterns are applied in order and the last matching one wins, so a later
    include can re-add a path an earlier ``!`` exclusion removed.

    Paths are returned relative to the workspace in POSIX form. Matches
    outside the workspace keep their ``..`` prefix and are rejected later
    by the archive builder.

    Raises:
        PathResolutionError: If no include pattern is given, expansion fails,
            or nothing matches
    """
    patterns = parse_patterns(pattern)
    if not any(not p.negate for p in patterns):
        raise PathResolutionError(f"No path patterns given in {pattern!r}")

    workspace = Path(os.path.abspath(workspace))
    compiled = [_CompiledPattern.compile(p, workspace) for p in patterns]
    try:
        candidates: set[Path] = set()
        for include in compiled:
            if not include.negate:
                candidates.update(include.candidates())
    except OSError as e:
        raise PathResolutionError(f"Failed to expand {pattern!r}: {e}") from e

    files = [path for path in candidates if _selected(path, compiled)]
    if not files:
        raise PathResolutionError(
            f"No files matched {pattern!r} under workspace {workspace}"
        )

    return tuple(
        sorted(Path(os.path.relpath(p, workspace)).as_posix() for p in files)
    )


def resolve_workspace(workspace: str | Path | None = None) -> Path:
    """Workspace root: explicit value, else GITHUB_WORKSPACE, else cwd."""
    if workspace:
        return Path(workspace)
    if env_workspace := os.environ.get("GITHUB_WORKSPACE"):
        return Path(env_workspace)
    return Path.cwd()
