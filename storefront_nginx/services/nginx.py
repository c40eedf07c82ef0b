"""nginx configuration emitter.

Builds a tree of :class:`Directive` values and renders it as nginx config
text.  Rendering is a pure function of its inputs: the same rewrites,
redirects, header map and file list always produce byte-identical output.
"""

import re
from typing import List, Mapping, NamedTuple, Optional, Sequence

from storefront_nginx.models.nginx_options import NginxOptions
from storefront_nginx.models.redirect import Redirect, Rewrite
from storefront_nginx.services.headers import page_html_file

_INDENT = "  "

# Route segments understood by the site builder: "*" and "/:param"
_PATH_TOKEN = re.compile(r"(\*|(?<=/):[A-Za-z_][A-Za-z0-9_]*)")
_ABSOLUTE_URL = re.compile(r"^https?://", re.IGNORECASE)
_NEEDS_QUOTES = re.compile(r"[\s;{}\"'\\$#]")
_HEADER_NAME = re.compile(r"^[!#$%&'*+.^_`|~0-9A-Za-z-]+$")


class Directive(NamedTuple):
    args: List[str]
    children: Optional[List["Directive"]] = None


def _quote(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


def _arg(value: str) -> str:
    """Quote *value* only when nginx would otherwise misparse it."""
    if not value or _NEEDS_QUOTES.search(value):
        return _quote(value)
    return value


def _is_pattern(path: str) -> bool:
    return bool(_PATH_TOKEN.search(path))


def _path_regex(path: str) -> str:
    """Translate a route pattern (``/product/:slug``, ``/promo/*``) to an anchored regex."""
    parts = []
    for token in _PATH_TOKEN.split(path.rstrip("/") or "/"):
        if token == "*":
            parts.append(".*")
        elif token.startswith(":") and len(token) > 1:
            parts.append("[^/]+")
        else:
            parts.append(re.escape(token))
    return "^" + "".join(parts) + "/?$"


def _location(path: str, children: List[Directive]) -> Directive:
    if _is_pattern(path):
        return Directive(["location", "~", _quote(_path_regex(path))], children)
    return Directive(["location", "=", _arg(path)], children)


def _internal_uri(to_path: str) -> str:
    """URI of the file that serves *to_path*, so the rewritten request gets its headers."""
    if _ABSOLUTE_URL.match(to_path):
        return to_path
    last_segment = to_path.rstrip("/").rsplit("/", 1)[-1]
    if "." in last_segment:
        return to_path
    return "/" + page_html_file(to_path)


def _header_directive(line: str, path: str) -> Directive:
    name, sep, value = line.partition(":")
    name = name.strip()
    if not sep or not _HEADER_NAME.match(name):
        raise ValueError(f"Invalid header line for '{path}': {line!r}")
    if "$" in value:
        raise ValueError(f"Header value for '{path}' contains '$': {line!r}")
    return Directive(["add_header", name, _quote(value.strip())])


def generate_rewrites(rewrites: Sequence[Rewrite]) -> List[Directive]:
    return [
        _location(
            rewrite.from_path,
            [Directive(["rewrite", "^", _arg(_internal_uri(rewrite.to_path)), "last"])],
        )
        for rewrite in rewrites
    ]


def generate_redirects(redirects: Sequence[Redirect]) -> List[Directive]:
    directives = []
    for redirect in redirects:
        status = redirect.status_code or (301 if redirect.is_permanent else 302)
        if status == 200:
            # Served in place: proxied when external, rewritten when local
            if _ABSOLUTE_URL.match(redirect.to_path):
                body = Directive(["proxy_pass", _arg(redirect.to_path)])
            else:
                body = Directive(["rewrite", "^", _arg(_internal_uri(redirect.to_path)), "last"])
        else:
            body = Directive(["return", str(status), _arg(redirect.to_path)])
        directives.append(_location(redirect.from_path, [body]))
    return directives


def generate_files(
    files: Sequence[str],
    headers: Mapping[str, Sequence[str]],
) -> List[Directive]:
    """One exact-match location per file, carrying that file's header lines in order.

    Raises:
        ValueError: if a file is listed twice, has no entry in *headers*, or
            an entry holds a line that is not ``Name: value`` or whose value
            contains ``$`` (nginx would expand it as a variable).
    """
    directives = []
    seen = set()
    for file in files:
        if file in seen:
            raise ValueError(f"Build output file listed more than once: '{file}'")
        seen.add(file)
        if file not in headers:
            raise ValueError(f"No header entry for build output file '{file}'")
        directives.append(
            Directive(
                ["location", "=", _arg("/" + file)],
                [_header_directive(line, file) for line in headers[file]],
            )
        )
    return directives


def _render(directives: Sequence[Directive], depth: int, out: List[str]) -> None:
    indent = _INDENT * depth
    for directive in directives:
        head = " ".join(directive.args)
        if directive.children is None:
            out.append(f"{indent}{head};")
            continue
        out.append(f"{indent}{head} {{")
        _render(directive.children, depth + 1, out)
        out.append(f"{indent}}}")


def stringify(directives: Sequence[Directive]) -> str:
    out: List[str] = []
    _render(directives, 0, out)
    return "\n".join(out) + "\n"


def generate_nginx_configuration(
    rewrites: Sequence[Rewrite],
    redirects: Sequence[Redirect],
    headers: Mapping[str, Sequence[str]],
    files: Sequence[str],
    options: Optional[NginxOptions] = None,
) -> str:
    """Render the full nginx configuration for a build.

    Rewrites come before redirects, each in the given order, followed by one
    location per file and a final catch-all.
    """
    options = options or NginxOptions()

    server = Directive(
        ["server"],
        [
            Directive(["listen", _arg(options.listen), "default_server"]),
            Directive(["root", _arg(options.root)]),
            Directive(["index", "index.html"]),
            Directive(["absolute_redirect", "off"]),
            *generate_rewrites(rewrites),
            *generate_redirects(redirects),
            *generate_files(files, headers),
            Directive(
                ["location", "/"],
                [Directive(["try_files", "$uri", "$uri/", "=404"])],
            ),
        ],
    )

    return stringify(
        [
            Directive(["worker_processes", str(options.worker_processes)]),
            Directive(["worker_rlimit_nofile", str(options.worker_rlimit_nofile)]),
            Directive(["error_log", _arg(options.error_log)]),
            Directive(["pid", _arg(options.pid)]),
            Directive(
                ["events"],
                [Directive(["worker_connections", str(options.worker_connections)])],
            ),
            Directive(
                ["http"],
                [
                    Directive(["include", _arg(options.mime_types)]),
                    Directive(["default_type", "application/octet-stream"]),
                    Directive(["access_log", _arg(options.access_log)]),
                    server,
                ],
            ),
        ]
    )
