"""Endpoint specifiers - decomposition, composition and canonical signatures.

An endpoint is ``[name=]source[#target]``. The source is a registry name, URL,
filesystem path or VCS remote; the target a version range, tag, branch, commit
or ``*``. Two endpoints share one fetch when their canonical signatures match.
"""

import os
import re
from pathlib import Path

from pydantic import BaseModel
from pydantic import ConfigDict

from . import semver

_SPECIFIER = re.compile(r"^(?:([\w.\-]*[\w\-])=)?([^|#]+)(?:#(.*))?$")
_ARCHIVE_SUFFIXES = (".tar.gz", ".tgz", ".tar.bz2", ".tar", ".zip")


class Endpoint(BaseModel):
    """Located, targeted reference to package content (immutable)."""

    model_config = ConfigDict(frozen=True)

    name: str | None = None
    source: str
    target: str = "*"

    @property
    def signature(self) -> str:
        """Canonical ``source#target`` key used for fetch deduplication."""
        return f"{self.source}#{normalize_target(self.target)}"

    @property
    def is_registry(self) -> bool:
        return is_registry_source(self.source)

    def with_target(self, target: str) -> "Endpoint":
        return self.model_copy(update={"target": target})

    def with_name(self, name: str | None) -> "Endpoint":
        return self.model_copy(update={"name": name})

    def __str__(self) -> str:
        return compose(self)


def normalize_target(target: str | None) -> str:
    if target is None:
        return "*"
    target = target.strip()
    return "*" if target in semver.WILDCARD_TARGETS else target


def is_local_source(source: str) -> bool:
    return source.startswith((".", "/", "~", "\\")) or bool(re.match(r"^[A-Za-z]:[\\/]", source))


def is_registry_source(source: str) -> bool:
    """Registry sources are bare package names (no path separators or schemes)."""
    return not is_local_source(source) and "/" not in source and ":" not in source


def canonical_source(source: str, cwd: Path | None = None) -> str:
    """Normalize a source so equivalent locations compare equal.

    Local paths become absolute (relative ones resolved against ``cwd``); URLs lose
    trailing slashes; registry names are kept as-is.
    """
    source = source.strip()
    if is_local_source(source):
        path = Path(source).expanduser()
        if not path.is_absolute():
            path = (cwd or Path.cwd()) / path
        return os.path.normpath(str(path))
    if "://" in source:
        return source.rstrip("/")
    return source


def decompose(specifier: str, cwd: Path | None = None) -> Endpoint:
    """Parse ``[name=]source[#target]`` into an Endpoint.

    Example:
        >>> decompose("jquery#~2.1")
        Endpoint(name=None, source='jquery', target='~2.1')
        >>> decompose("jq=jquery#2.1.0").name
        'jq'
    """
    match = _SPECIFIER.match(specifier.strip())
    if not match:
        raise ValueError(f"Invalid endpoint specifier: {specifier!r}")

    name, source, target = match.groups()
    return Endpoint(
        name=name or None,
        source=canonical_source(source, cwd),
        target=normalize_target(target),
    )


def from_dependency(name: str, value: str | None, cwd: Path | None = None) -> Endpoint:
    """Build the endpoint for a ``name: value`` manifest dependency declaration.

    A bare range (``"~1.2"``) targets the registry entry of ``name``; anything else
    is a source, optionally followed by ``#target``.
    """
    value = (value or "").strip()
    if "#" not in value and (value in semver.WILDCARD_TARGETS or semver.is_range(value)):
        return Endpoint(name=name, source=name, target=normalize_target(value))

    endpoint = decompose(value, cwd)
    return endpoint.with_name(name)


def to_dependency(endpoint: Endpoint) -> str:
    """Render an endpoint as the value stored in a manifest dependency map."""
    target = normalize_target(endpoint.target)
    if endpoint.is_registry and endpoint.source == endpoint.name and semver.is_range(target):
        return target
    if target == "*":
        return endpoint.source
    return f"{endpoint.source}#{target}"


def compose(endpoint: Endpoint) -> str:
    """Render an endpoint back to its ``[name=]source[#target]`` form."""
    text = endpoint.source
    target = normalize_target(endpoint.target)
    if target != "*":
        text = f"{text}#{target}"
    if endpoint.name and endpoint.name != endpoint.source:
        text = f"{endpoint.name}={text}"
    return text


def guess_name(source: str) -> str:
    """Guess a package name from its source when no name was declared.

    Example:
        >>> guess_name("https://github.com/yahoo/pure/archive/v0.6.0.tar.gz")
        'v0.6.0'
        >>> guess_name("/tmp/work/package.tar")
        'package'
    """
    text = source.rstrip("/\\")
    base = re.split(r"[/\\:]", text)[-1] or text
    for suffix in (".git", *_ARCHIVE_SUFFIXES):
        if base.endswith(suffix):
            base = base[: -len(suffix)]
            break
    return base or text
