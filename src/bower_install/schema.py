"""Manifest, configuration and option models.

Parsing the JSON files is the app layer's job; these models validate the parsed
mappings. ``from_file`` helpers exist for the command-line entry point.
"""

import json
from pathlib import Path

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field


class PackageManifest(BaseModel):
    """
    Package metadata from bower.json (immutable once read for a given fetch).

    Unknown keys are kept so a manifest can be written back without losing data.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    name: str | None = None
    version: str | None = None
    main: str | list[str] | None = None
    dependencies: dict[str, str] = Field(default_factory=dict)
    dev_dependencies: dict[str, str] = Field(default_factory=dict, alias="devDependencies")
    ignore: list[str] = Field(default_factory=list)

    @classmethod
    def from_file(cls, manifest_path: Path) -> "PackageManifest":
        """
        Load manifest from a bower.json file.

        Args:
            manifest_path: Path to bower.json

        Returns:
            Manifest instance

        Raises:
            FileNotFoundError: If the file doesn't exist
            json.JSONDecodeError: If the file is not valid JSON
        """
        if not manifest_path.exists():
            raise FileNotFoundError(f"bower.json not found: {manifest_path}")

        with open(manifest_path) as f:
            return cls.model_validate(json.load(f))

    def to_dict(self) -> dict:
        """Convert to the bower.json mapping (aliases, no empty optional keys)."""
        data = self.model_dump(by_alias=True, exclude_none=True)
        for key in ("dependencies", "devDependencies", "ignore"):
            if not data.get(key):
                data.pop(key, None)
        return data


class ProjectManifest(PackageManifest):
    """Root project manifest: package metadata plus root-only resolution pins."""

    resolutions: dict[str, str] = Field(default_factory=dict)

    def declared(self, production: bool = False) -> dict[str, str]:
        """Dependencies the root declares (devDependencies skipped in production)."""
        if production:
            return dict(self.dependencies)
        return {**self.dev_dependencies, **self.dependencies}

    def with_saved(self, name: str, value: str, dev: bool = False) -> "ProjectManifest":
        """Return a copy with ``name`` saved into (dev)dependencies, removed from the other map."""
        dependencies = dict(self.dependencies)
        dev_dependencies = dict(self.dev_dependencies)
        if dev:
            dev_dependencies[name] = value
            dependencies.pop(name, None)
        else:
            dependencies[name] = value
            dev_dependencies.pop(name, None)
        return self.model_copy(update={"dependencies": dependencies, "dev_dependencies": dev_dependencies})

    def to_dict(self) -> dict:
        data = super().to_dict()
        if not data.get("resolutions"):
            data.pop("resolutions", None)
        return data


class HookScripts(BaseModel):
    """Lifecycle script templates; ``%`` is replaced by the affected package names."""

    model_config = ConfigDict(frozen=True)

    preinstall: str | None = None
    postinstall: str | None = None


class InstallConfig(BaseModel):
    """
    Settings consumed by the install engine (parsed from .bowerrc by the app).

    Relative ``directory`` and ``lockfile`` values are resolved against ``cwd``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    cwd: Path = Field(default_factory=Path.cwd)
    directory: str = "bower_components"
    lockfile: str = "bower.lock"
    proxy: str | None = None
    ignored_dependencies: list[str] = Field(default_factory=list, alias="ignoredDependencies")
    scripts: HookScripts = Field(default_factory=HookScripts)
    concurrency: int = Field(default=8, ge=1)

    @property
    def components_dir(self) -> Path:
        return self._resolve(self.directory)

    @property
    def lock_path(self) -> Path:
        return self._resolve(self.lockfile)

    def _resolve(self, value: str) -> Path:
        path = Path(value).expanduser()
        return path if path.is_absolute() else self.cwd / path

    @classmethod
    def from_file(cls, rc_path: Path, **overrides) -> "InstallConfig":
        """Load settings from a .bowerrc file, falling back to defaults when absent."""
        data: dict = {"cwd": rc_path.parent}
        if rc_path.exists():
            with open(rc_path) as f:
                data.update(json.load(f))
        data.update(overrides)
        return cls.model_validate(data)


class InstallOptions(BaseModel):
    """Flags understood by the install entry point."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    force_latest: bool = Field(default=False, alias="forceLatest")
    production: bool = False
    save: bool = False
    save_dev: bool = Field(default=False, alias="saveDev")
    save_exact: bool = Field(default=False, alias="saveExact")
