"""Asset manifest collection and merging.

Two sources describe which physical files the bundler emitted for each
logical chunk:

* the :class:`AssetManifestCollector`, fed one record per emitted asset while
  the HTML bundle is being built, and
* the bundler's own stats file (``webpack.stats.json``), read once after the
  build.

:func:`merge_manifests` combines them; the stats file is authoritative for
every chunk it knows about and the collector only fills in the rest.
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Mapping

from storefront_nginx.services.constants import BUILD_HTML_STAGE

logger = logging.getLogger(__name__)

AssetManifest = Dict[str, List[str]]


class StatsFileError(RuntimeError):
    """The bundler stats file is missing or cannot be interpreted."""


class ManifestNotReadyError(RuntimeError):
    """The collector was read before bundling finished, or written after."""


class AssetManifestCollector:
    """Accumulates chunk name -> emitted files during the bundling phase.

    The build integration calls :meth:`record` once per emitted asset and
    :meth:`seal` when bundling is complete; the post-build step then takes
    the result through :meth:`snapshot`.
    """

    def __init__(self) -> None:
        self._assets: AssetManifest = {}
        self._sealed = False

    @property
    def sealed(self) -> bool:
        return self._sealed

    def record(self, chunk_name: str, file_name: str, stage: str = BUILD_HTML_STAGE) -> None:
        if self._sealed:
            raise ManifestNotReadyError(
                f"Cannot record '{chunk_name}' after bundling has completed."
            )
        if stage != BUILD_HTML_STAGE:
            return
        files = self._assets.setdefault(chunk_name, [])
        if file_name not in files:
            files.append(file_name)

    def seal(self) -> None:
        self._sealed = True

    def snapshot(self) -> AssetManifest:
        if not self._sealed:
            raise ManifestNotReadyError("Asset manifest read before bundling completed.")
        return {name: list(files) for name, files in self._assets.items()}


def load_stats_manifest(stats_path: Path) -> AssetManifest:
    """Return ``assetsByChunkName`` from the bundler stats file at *stats_path*.

    Webpack writes a bare string for single-file chunks; those are wrapped in
    a one-element list.

    Raises:
        StatsFileError: if the file is missing, is not valid JSON, or lacks a
            usable ``assetsByChunkName`` mapping.
    """
    try:
        with Path(stats_path).open("r", encoding="utf-8") as fp:
            stats = json.load(fp)
    except FileNotFoundError as exc:
        raise StatsFileError(f"Bundler stats file not found: {stats_path}") from exc
    except (OSError, ValueError) as exc:
        raise StatsFileError(f"Bundler stats file is unreadable: {stats_path}: {exc}") from exc

    by_chunk = stats.get("assetsByChunkName") if isinstance(stats, dict) else None
    if not isinstance(by_chunk, dict):
        raise StatsFileError(f"'assetsByChunkName' missing from {stats_path}")

    manifest: AssetManifest = {}
    for name, files in by_chunk.items():
        if isinstance(files, str):
            files = [files]
        if not isinstance(files, list) or not all(isinstance(f, str) for f in files):
            raise StatsFileError(f"Invalid asset list for chunk '{name}' in {stats_path}")
        manifest[name] = list(files)
    return manifest


def merge_manifests(
    collected: Mapping[str, List[str]],
    stats: Mapping[str, List[str]],
) -> AssetManifest:
    """Combine *collected* and *stats*; a chunk listed in *stats* takes its list whole."""
    merged: AssetManifest = {name: list(files) for name, files in collected.items()}
    for name, files in stats.items():
        if name in merged:
            logger.debug("Stats entry replaces collected chunk %s", name)
        merged[name] = list(files)
    return merged
