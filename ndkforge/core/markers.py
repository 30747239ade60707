"""
Build marker cache.

A marker records that a component was built successfully from a specific
set of inputs. The inputs are captured as a :class:`Fingerprint` and
stored as one line of text in ``<markers_dir>/<component>.marker``.

Markers are compared by exact string match, never by timestamp, so the
cache stays correct under clock skew, restored backups and re-downloads
of identical bytes: any change to an input shows up as a mismatch.

Marker files are only ever replaced whole (temp file + rename), so a
marker is either absent, valid from a previous run, or valid from the
current run.

Example:
    >>> cache = MarkerCache(Path('staging/.built'))
    >>> fp = Fingerprint(archive='38ef...', cflags='-O2', cppflags='')
    >>> cache.is_built_match('zlib', fp.serialize())
    False
    >>> cache.mark_built('zlib', fp.serialize())
"""

import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional

logger = logging.getLogger(__name__)

MARKER_SUFFIX = ".marker"


# ============================================================================
# Fingerprint
# ============================================================================


@dataclass(frozen=True)
class Fingerprint:
    """
    Structured description of a component's build inputs.

    Attributes:
        archive: Content digest of the source archive
        cflags: Active compile flags
        cppflags: Active preprocessor flags
        arch: Target architecture name (target builds)
        api: Target API level (target builds)
        uname: Build machine name (host builds)
        extra: Additional discriminators
    """

    archive: str
    cflags: Optional[str] = None
    cppflags: Optional[str] = None
    arch: Optional[str] = None
    api: Optional[int] = None
    uname: Optional[str] = None
    extra: Mapping[str, str] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, str]:
        """Return all set fields as strings. ``None`` fields are omitted."""
        values = {
            "archive": self.archive,
            "cflags": self.cflags,
            "cppflags": self.cppflags,
            "arch": self.arch,
            "api": self.api,
            "uname": self.uname,
        }
        for key, value in self.extra.items():
            if key in values:
                raise ValueError(f"Fingerprint extra key shadows a field: {key}")
            values[key] = value

        return {k: str(v) for k, v in values.items() if v is not None}

    def serialize(self) -> str:
        """
        Canonical text form: ``key=value`` pairs in sorted key order, joined by ``;``.

        Example:
            >>> Fingerprint(archive='H1', cflags='-O2', cppflags='').serialize()
            'archive=H1;cflags=-O2;cppflags='
        """
        values = self.as_dict()
        return ";".join(f"{key}={values[key]}" for key in sorted(values))

    def __str__(self) -> str:
        return self.serialize()


# ============================================================================
# Marker Cache
# ============================================================================


class MarkerCache:
    """
    Directory of per-component build markers.

    Attributes:
        markers_dir: Directory holding ``<component>.marker`` files
    """

    def __init__(self, markers_dir: Path):
        self.markers_dir = Path(markers_dir)

    def marker_path(self, component: str) -> Path:
        if not component or "/" in component or component.startswith("."):
            raise ValueError(f"Invalid component name: {component!r}")
        return self.markers_dir / f"{component}{MARKER_SUFFIX}"

    def mark_built(self, component: str, fingerprint: str) -> None:
        """
        Record ``component`` as built with ``fingerprint``.

        The text is written to a uniquely named temp file in the markers
        directory and renamed over the canonical path, replacing any
        previous marker.
        """
        path = self.marker_path(component)
        self.markers_dir.mkdir(parents=True, exist_ok=True)

        fd, temp_name = tempfile.mkstemp(
            dir=self.markers_dir, prefix=f"{component}.tmp."
        )
        temp_path = Path(temp_name)

        try:
            with open(fd, "w", encoding="utf-8") as f:
                f.write(f"{fingerprint}\n")
            os.replace(temp_path, path)
        except BaseException:
            temp_path.unlink(missing_ok=True)
            raise

        logger.debug(f"Marked {component} built: {fingerprint}")

    def is_built(self, component: str) -> bool:
        """True if any marker exists for ``component``, whatever its content."""
        return self.marker_path(component).is_file()

    def read(self, component: str) -> Optional[str]:
        """Return the stored fingerprint (without the trailing newline), or None."""
        path = self.marker_path(component)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        return text[:-1] if text.endswith("\n") else text

    def is_built_match(self, component: str, expected: str) -> bool:
        """True if a marker exists and its content is exactly ``expected``."""
        path = self.marker_path(component)
        try:
            return path.read_text(encoding="utf-8") == f"{expected}\n"
        except FileNotFoundError:
            return False

    def clear_marker(self, component: str) -> None:
        """Delete the marker for ``component`` if present."""
        path = self.marker_path(component)
        if path.exists():
            path.unlink()
            logger.debug(f"Cleared marker for {component}")

    def list_markers(self) -> Dict[str, str]:
        """Return ``{component: fingerprint}`` for every marker, sorted by name."""
        if not self.markers_dir.is_dir():
            return {}

        markers = {}
        for path in sorted(self.markers_dir.glob(f"*{MARKER_SUFFIX}")):
            component = path.name[: -len(MARKER_SUFFIX)]
            markers[component] = self.read(component) or ""
        return markers

    def clear_all(self) -> int:
        """Delete every marker. Returns the number removed."""
        components = list(self.list_markers())
        for component in components:
            self.clear_marker(component)
        return len(components)
