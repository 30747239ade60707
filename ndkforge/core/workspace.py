"""
Target workspace layout.

Every build target gets its own directory tree::

    <workspace>/<recipe>-<triple><api>/
        downloads/          cached source archives
        src/                extracted source trees, one per component
        staging/            shared install prefix for dependencies
            .built/         build markers (and lock files)
        output/             install prefix of the final product

Staging and output are only ever cleaned at the granularity of the
component being rebuilt; the output tree is reset as a whole before the
final product build.
"""

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class Workspace:
    """Directory layout for one (recipe, triple, api) target."""

    root: Path

    @classmethod
    def for_target(cls, workspace_root: Path, recipe: str, triple: str, api_level: int):
        return cls(Path(workspace_root).expanduser() / f"{recipe}-{triple}{api_level}")

    @property
    def downloads(self) -> Path:
        return self.root / "downloads"

    @property
    def src(self) -> Path:
        return self.root / "src"

    @property
    def staging(self) -> Path:
        return self.root / "staging"

    @property
    def markers(self) -> Path:
        return self.staging / ".built"

    @property
    def output(self) -> Path:
        return self.root / "output"

    def source_dir(self, name: str) -> Path:
        return self.src / name

    def download_path(self, filename: str) -> Path:
        return self.downloads / filename

    def ensure(self) -> "Workspace":
        """Create every directory of the layout (idempotent)."""
        for path in (self.downloads, self.src, self.staging, self.markers, self.output):
            path.mkdir(parents=True, exist_ok=True)
        return self
