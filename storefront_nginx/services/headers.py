"""Per-file HTTP response header policy.

:func:`compute_headers` builds a map of build output file -> header lines by
running a fixed sequence of steps, each a pure ``HeadersMap -> HeadersMap``
function:

1. an empty entry for every file,
2. ``Link: ...; rel=preload`` hints on each page's HTML file,
3. ``Cache-Control`` for page HTML, page data and the page's chunk assets,
4. the caller's transform, which replaces each entry wholesale,
5. an immutable ``Cache-Control`` for content-hashed static assets,
6. a revalidating public ``Cache-Control`` for everything else.

Steps other than 4 only ever append.  Steps 5 and 6 skip entries that already
carry a ``Cache-Control`` line, so whatever the transform decided about
caching is kept.
"""

import logging
import re
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Set

from storefront_nginx.models.page import Page
from storefront_nginx.services.constants import (
    APP_DATA_FILE,
    PAGE_DATA_DIR,
    SHARED_CHUNK_NAMES,
)

logger = logging.getLogger(__name__)

HeadersMap = Dict[str, List[str]]
HeadersTransform = Callable[[List[str], str], List[str]]

IMMUTABLE_CACHING_HEADER = "Cache-Control: public, max-age=31536000, immutable"
REVALIDATE_CACHING_HEADER = "Cache-Control: public, max-age=0, must-revalidate"
PUBLIC_CACHING_HEADER = REVALIDATE_CACHING_HEADER

_CACHE_CONTROL_PREFIX = "cache-control:"

# Preload destination ("as=") by file extension
_PRELOAD_TYPES = {
    ".js": "script",
    ".mjs": "script",
    ".css": "style",
    ".woff": "font",
    ".woff2": "font",
    ".ttf": "font",
    ".otf": "font",
    ".png": "image",
    ".jpg": "image",
    ".jpeg": "image",
    ".gif": "image",
    ".svg": "image",
    ".webp": "image",
    ".avif": "image",
    ".json": "fetch",
}

# Destinations the browser fetches in CORS mode
_CROSSORIGIN_TYPES = {"font", "fetch"}

# A hash segment mixes digits and a-f letters, so years and pixel sizes never match.
# Any file: app-3f9c1e2d.js.map, component---src-pages-index-0e4f77ab12.css
_HASHED_NAME = re.compile(r"[.-](?=[0-9a-f]*[0-9])(?=[0-9a-f]*[a-f])[0-9a-f]{8,}(?:\.[A-Za-z0-9]+)+$")
# Files the bundler reports in the asset manifest: app.a1b2.js
_BUNDLED_HASH_NAME = re.compile(r"[.-](?=[0-9a-f]*[0-9])(?=[0-9a-f]*[a-f])[0-9a-f]{4,}(?:\.[A-Za-z0-9]+)+$")
_STATIC_DIR = "static/"


def has_cache_directive(lines: Iterable[str]) -> bool:
    return any(line.lower().startswith(_CACHE_CONTROL_PREFIX) for line in lines)


def is_content_hashed(path: str, bundled: bool = False) -> bool:
    """Return *True* when *path* follows a content-addressed naming convention.

    Short hashes are only trusted for *bundled* files, i.e. files the asset
    manifest lists as chunk output.
    """
    if path.startswith(_STATIC_DIR):
        return True
    pattern = _BUNDLED_HASH_NAME if bundled else _HASHED_NAME
    return bool(pattern.search(path.rsplit("/", 1)[-1]))


def bundled_files(manifest: Mapping[str, Sequence[str]]) -> Set[str]:
    return {_normalize_asset(f) for files in manifest.values() for f in files}


def page_html_file(page_path: str) -> str:
    """Map a page route to the HTML file that serves it (``/sale`` -> ``sale/index.html``)."""
    trimmed = page_path.strip("/")
    if not trimmed:
        return "index.html"
    if trimmed.endswith(".html"):
        return trimmed
    return f"{trimmed}/index.html"


def page_data_file(page_path: str) -> str:
    trimmed = page_path.strip("/") or "index"
    return f"{PAGE_DATA_DIR}/{trimmed}/page-data.json"


def _normalize_asset(file_name: str) -> str:
    return file_name.lstrip("/")


def _copy(headers: Mapping[str, List[str]]) -> HeadersMap:
    return {path: list(lines) for path, lines in headers.items()}


def page_chunk_names(page: Page) -> List[str]:
    names = list(SHARED_CHUNK_NAMES)
    if page.component_chunk_name and page.component_chunk_name not in names:
        names.append(page.component_chunk_name)
    return names


def resolve_page_assets(
    page: Page,
    manifest: Mapping[str, Sequence[str]],
    files: Iterable[str],
) -> List[str]:
    """Return the built files the page's critical chunks resolve to, in chunk order.

    Chunks missing from *manifest* contribute nothing.  Files the manifest
    names but which are not part of the build output are dropped.
    """
    available = set(files)
    assets: List[str] = []
    for chunk_name in page_chunk_names(page):
        chunk_files = manifest.get(chunk_name)
        if not chunk_files:
            logger.debug("No manifest entry for chunk %s of page %s", chunk_name, page.path)
            continue
        for file_name in chunk_files:
            asset = _normalize_asset(file_name)
            if asset in assets:
                continue
            if asset not in available:
                logger.warning(
                    "Manifest file missing from build output",
                    extra={"chunk": chunk_name, "file": asset},
                )
                continue
            assets.append(asset)
    return assets


def _preload_line(asset: str, path_prefix: str) -> Optional[str]:
    if asset.endswith(".map"):
        return None
    dot = asset.rfind(".")
    preload_type = _PRELOAD_TYPES.get(asset[dot:].lower()) if dot != -1 else None
    if preload_type is None:
        return None
    line = f"Link: <{path_prefix}/{asset}>; rel=preload; as={preload_type}"
    if preload_type in _CROSSORIGIN_TYPES:
        line += "; crossorigin"
    return line


# ---------------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------------

def empty_headers_map_for_files(files: Iterable[str]) -> HeadersMap:
    return {path: [] for path in files}


def preload_headers_by_path(
    headers: Mapping[str, List[str]],
    pages: Sequence[Page],
    manifest: Mapping[str, Sequence[str]],
    path_prefix: str = "",
) -> HeadersMap:
    """Append preload hints for each page's critical assets to its HTML file entry."""
    result = _copy(headers)
    prefix = path_prefix.rstrip("/")

    for page in pages:
        html_file = page_html_file(page.path)
        if html_file not in result:
            logger.debug("Page %s has no HTML file in the build output", page.path)
            continue

        preloads = resolve_page_assets(page, manifest, result)
        for data_file in (page_data_file(page.path), APP_DATA_FILE):
            if data_file in result and data_file not in preloads:
                preloads.append(data_file)

        lines = result[html_file]
        for asset in preloads:
            line = _preload_line(asset, prefix)
            if line is not None and line not in lines:
                lines.append(line)

    return result


def cache_headers_by_path(
    headers: Mapping[str, List[str]],
    pages: Sequence[Page],
    manifest: Mapping[str, Sequence[str]],
) -> HeadersMap:
    """Append ``Cache-Control`` to page HTML, page data and the pages' chunk assets.

    Content-hashed chunk files can be cached forever; page HTML and data keep
    their names across builds and must be revalidated.
    """
    result = _copy(headers)
    assigned = set()

    def assign(path: str, line: str) -> None:
        if path in assigned or path not in result:
            return
        assigned.add(path)
        result[path].append(line)

    for page in pages:
        assign(page_html_file(page.path), REVALIDATE_CACHING_HEADER)
        assign(page_data_file(page.path), REVALIDATE_CACHING_HEADER)
        for asset in resolve_page_assets(page, manifest, result):
            assign(
                asset,
                IMMUTABLE_CACHING_HEADER
                if is_content_hashed(asset, bundled=True)
                else REVALIDATE_CACHING_HEADER,
            )

    return result


def apply_user_headers_transform(
    headers: Mapping[str, List[str]],
    transform: HeadersTransform,
) -> HeadersMap:
    """Replace every entry with ``transform(lines, path)``.

    Whatever the transform raises propagates to the caller.
    """
    result: HeadersMap = {}
    for path, lines in headers.items():
        transformed = transform(list(lines), path)
        if not isinstance(transformed, list) or not all(isinstance(line, str) for line in transformed):
            raise TypeError(
                f"Header transform must return a list of strings for '{path}', "
                f"got {type(transformed).__name__}"
            )
        result[path] = list(transformed)
    return result


def add_static_caching_header(
    headers: Mapping[str, List[str]],
    manifest: Optional[Mapping[str, Sequence[str]]] = None,
) -> HeadersMap:
    bundled = bundled_files(manifest or {})
    result = _copy(headers)
    for path, lines in result.items():
        if is_content_hashed(path, bundled=path in bundled) and not has_cache_directive(lines):
            lines.append(IMMUTABLE_CACHING_HEADER)
    return result


def add_public_caching_header(headers: Mapping[str, List[str]]) -> HeadersMap:
    result = _copy(headers)
    for lines in result.values():
        if not has_cache_directive(lines):
            lines.append(PUBLIC_CACHING_HEADER)
    return result


def compute_headers(
    files: Sequence[str],
    pages: Sequence[Page],
    manifest: Mapping[str, Sequence[str]],
    path_prefix: str = "",
    transform: Optional[HeadersTransform] = None,
) -> HeadersMap:
    """Return the final header lines for every file in *files*."""
    steps: List[Callable[[HeadersMap], HeadersMap]] = [
        lambda headers: preload_headers_by_path(headers, pages, manifest, path_prefix),
        lambda headers: cache_headers_by_path(headers, pages, manifest),
    ]
    if transform is not None:
        steps.append(lambda headers: apply_user_headers_transform(headers, transform))
    steps.append(lambda headers: add_static_caching_header(headers, manifest))
    steps.append(add_public_caching_header)

    headers = empty_headers_map_for_files(files)
    for step in steps:
        headers = step(headers)

    logger.info(
        "Computed response headers",
        extra={"files": len(headers), "pages": len(pages), "transformed": transform is not None},
    )
    return headers
