"""Post-build step: turn a finished static build into ``nginx.out.conf``."""

import logging
import os
from pathlib import Path
from typing import Optional, Sequence

from storefront_nginx.models.nginx_options import NginxOptions
from storefront_nginx.models.page import Page
from storefront_nginx.models.redirect import Redirect
from storefront_nginx.services.constants import (
    NGINX_CONF_FILENAME,
    NGINX_CONF_TMP_FILENAME,
    WEBPACK_STATS_FILENAME,
)
from storefront_nginx.services.files import list_files_recursively
from storefront_nginx.services.headers import HeadersTransform, compute_headers
from storefront_nginx.services.manifest import (
    AssetManifestCollector,
    load_stats_manifest,
    merge_manifests,
)
from storefront_nginx.services.nginx import generate_nginx_configuration
from storefront_nginx.services.rewrites import derive_rewrites

logger = logging.getLogger(__name__)


def write_artifact(path: Path, text: str) -> None:
    """Write *text* to *path* in one piece; a failed write leaves any old file intact."""
    tmp_path = path.with_name(NGINX_CONF_TMP_FILENAME)
    try:
        tmp_path.write_text(text, encoding="utf-8")
        os.replace(tmp_path, path)
    except OSError:
        tmp_path.unlink(missing_ok=True)
        raise


def on_post_build(
    public_dir: Path,
    pages: Sequence[Page],
    redirects: Sequence[Redirect],
    collector: AssetManifestCollector,
    path_prefix: str = "",
    transform_headers: Optional[HeadersTransform] = None,
    options: Optional[NginxOptions] = None,
) -> Path:
    """Compile the nginx configuration for the build in *public_dir* and write it there.

    Every input is read and the whole configuration rendered before anything
    is written, so any failure (unreadable stats file, unreadable directory,
    a raising header transform) leaves no new artifact behind.

    Returns:
        Path of the written configuration file.

    Raises:
        StatsFileError: if ``webpack.stats.json`` is missing or invalid.
        ManifestNotReadyError: if *collector* was not sealed.
        OSError: if the build output cannot be listed or the artifact written.
    """
    public_dir = Path(public_dir)

    stats = load_stats_manifest(public_dir / WEBPACK_STATS_FILENAME)
    manifest = merge_manifests(collector.snapshot(), stats)
    files = list_files_recursively(public_dir)

    rewrites = derive_rewrites(pages)
    headers = compute_headers(files, pages, manifest, path_prefix, transform_headers)
    config = generate_nginx_configuration(rewrites, redirects, headers, files, options)

    target = public_dir / NGINX_CONF_FILENAME
    write_artifact(target, config)

    logger.info(
        "Wrote nginx configuration",
        extra={
            "path": str(target),
            "files": len(files),
            "rewrites": len(rewrites),
            "redirects": len(redirects),
        },
    )
    return target
