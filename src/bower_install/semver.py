"""Version ordering and range satisfaction.

Thin adapter over ``semantic_version``: npm-style ranges (``^``, ``~``, x-ranges,
hyphen ranges, ``||``) via NpmSpec. Targets that are not ranges (branches, commit
SHAs, arbitrary tags) only satisfy themselves.
"""

import semantic_version

WILDCARD_TARGETS = frozenset({"", "*", "latest"})


def clean(value: str | None) -> semantic_version.Version | None:
    """Parse a release string into a Version, tolerating a leading ``v`` or ``=``.

    Returns:
        Version, or None if ``value`` is not a semantic version
    """
    if not value:
        return None
    text = value.strip().lstrip("=v").strip()
    try:
        return semantic_version.Version(text)
    except ValueError:
        return None


def is_version(value: str | None) -> bool:
    return clean(value) is not None


def _spec(target: str) -> semantic_version.NpmSpec | None:
    try:
        return semantic_version.NpmSpec(target.strip())
    except ValueError:
        return None


def is_range(target: str | None) -> bool:
    """Check whether a target is a version range (exact versions count as ranges)."""
    if target is None or target.strip() in WILDCARD_TARGETS:
        return True
    return _spec(target) is not None


def satisfies(release: str | None, target: str | None) -> bool:
    """Check whether a resolved release satisfies a requested target.

    Args:
        release: Resolved release (version, tag, branch or commit)
        target: Requested target (range, version, tag, branch, commit or wildcard)

    Returns:
        True if the release is acceptable for the target

    Example:
        >>> satisfies("0.1.1", "~0.1.0")
        True
        >>> satisfies("1.0.0", "1.0.1")
        False
        >>> satisfies("master", "master")
        True
    """
    if target is None or target.strip() in WILDCARD_TARGETS:
        return True
    if release is None:
        return False

    version = clean(release)
    spec = _spec(target)
    if version is not None and spec is not None:
        return spec.match(version)

    return release.strip() == target.strip()


def satisfies_all(release: str | None, targets: list[str]) -> bool:
    return all(satisfies(release, target) for target in targets)


def sort_key(release: str | None) -> tuple:
    """Sort key placing non-semver releases below every semantic version."""
    version = clean(release)
    if version is None:
        return (0, semantic_version.Version("0.0.0"), release or "")
    return (1, version, release or "")


def max_satisfying(releases: list[str], targets: list[str]) -> str | None:
    """Pick the highest release that satisfies every target.

    Returns:
        Matching release string, or None if no release satisfies all targets
    """
    matching = [r for r in releases if satisfies_all(r, targets)]
    if not matching:
        return None
    return max(matching, key=sort_key)
