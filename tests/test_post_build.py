"""End-to-end tests for post_build.on_post_build against a real build directory."""

import json
from unittest.mock import patch

import pytest

from storefront_nginx.models.nginx_options import NginxOptions
from storefront_nginx.models.page import Page
from storefront_nginx.models.redirect import Redirect
from storefront_nginx.services.constants import NGINX_CONF_FILENAME, WEBPACK_STATS_FILENAME
from storefront_nginx.services.headers import IMMUTABLE_CACHING_HEADER
from storefront_nginx.services.manifest import (
    AssetManifestCollector,
    ManifestNotReadyError,
    StatsFileError,
)
from storefront_nginx.services.post_build import on_post_build, write_artifact


@pytest.fixture
def public_dir(tmp_path):
    public = tmp_path / "public"
    for relative, content in {
        "index.html": "<html></html>",
        "sale/index.html": "<html></html>",
        "app.a1b2.js": "console.log(1)",
        "inter.5e6f.woff2": "font",
        "page-data/sale/page-data.json": "{}",
        WEBPACK_STATS_FILENAME: json.dumps({"assetsByChunkName": {"app": ["app.a1b2.js"]}}),
    }.items():
        path = public / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return public


@pytest.fixture
def collector():
    collector = AssetManifestCollector()
    collector.record("app", "app.old0.js")
    collector.record("fonts", "inter.5e6f.woff2")
    collector.seal()
    return collector


_PAGES = [
    Page(path="/"),
    Page(path="/sale", matchPath="/promo/sale"),
]
_REDIRECTS = [Redirect(fromPath="/old-sale", toPath="/sale", isPermanent=True)]


class TestOnPostBuild:
    def test_writes_artifact_in_public_dir(self, public_dir, collector):
        target = on_post_build(public_dir, _PAGES, _REDIRECTS, collector)
        assert target == public_dir / NGINX_CONF_FILENAME
        text = target.read_text(encoding="utf-8")
        assert "location = /promo/sale {" in text
        assert "return 301 /sale;" in text
        assert 'add_header Link "</app.a1b2.js>; rel=preload; as=script";' in text
        assert "app.old0.js" not in text

    def test_every_file_has_exactly_one_block(self, public_dir, collector):
        text = on_post_build(public_dir, _PAGES, _REDIRECTS, collector).read_text(encoding="utf-8")
        for relative in (
            "index.html",
            "sale/index.html",
            "app.a1b2.js",
            "inter.5e6f.woff2",
            "page-data/sale/page-data.json",
            WEBPACK_STATS_FILENAME,
        ):
            assert text.count(f"location = /{relative} {{") == 1
        assert f"location = /{NGINX_CONF_FILENAME}" not in text

    def test_rerun_is_byte_identical(self, public_dir, collector):
        first = on_post_build(public_dir, _PAGES, _REDIRECTS, collector).read_bytes()
        second = on_post_build(public_dir, _PAGES, _REDIRECTS, collector).read_bytes()
        assert first == second

    def test_path_prefix_transform_and_options(self, public_dir, collector):
        def transform(lines, path):
            return lines + ["X-Frame-Options: DENY"] if path.endswith(".html") else lines

        text = on_post_build(
            public_dir,
            _PAGES,
            [],
            collector,
            path_prefix="/store",
            transform_headers=transform,
            options=NginxOptions(root="/srv/public"),
        ).read_text(encoding="utf-8")
        assert "</store/app.a1b2.js>" in text
        assert 'add_header X-Frame-Options "DENY";' in text
        assert "root /srv/public;" in text

    def test_collected_only_asset_is_cached_immutably(self, public_dir, collector):
        text = on_post_build(public_dir, _PAGES, [], collector).read_text(encoding="utf-8")
        block = text.split("location = /inter.5e6f.woff2 {", 1)[1].split("}", 1)[0]
        assert IMMUTABLE_CACHING_HEADER.split(": ", 1)[1] in block

    def test_missing_stats_file_aborts_without_artifact(self, public_dir, collector):
        (public_dir / WEBPACK_STATS_FILENAME).unlink()
        with pytest.raises(StatsFileError):
            on_post_build(public_dir, _PAGES, _REDIRECTS, collector)
        assert not (public_dir / NGINX_CONF_FILENAME).exists()

    def test_unsealed_collector_aborts(self, public_dir):
        with pytest.raises(ManifestNotReadyError):
            on_post_build(public_dir, _PAGES, _REDIRECTS, AssetManifestCollector())
        assert not (public_dir / NGINX_CONF_FILENAME).exists()

    def test_failing_transform_keeps_previous_artifact(self, public_dir, collector):
        target = on_post_build(public_dir, _PAGES, _REDIRECTS, collector)
        previous = target.read_bytes()

        def transform(lines, path):
            raise RuntimeError("bad override")

        with pytest.raises(RuntimeError, match="bad override"):
            on_post_build(public_dir, _PAGES, _REDIRECTS, collector, transform_headers=transform)
        assert target.read_bytes() == previous

    def test_missing_public_dir_is_fatal(self, tmp_path, collector):
        with pytest.raises(StatsFileError):
            on_post_build(tmp_path / "public", _PAGES, _REDIRECTS, collector)

    def test_unreadable_build_output_aborts_without_artifact(self, public_dir, collector):
        with patch(
            "storefront_nginx.services.post_build.list_files_recursively",
            side_effect=PermissionError("denied"),
        ):
            with pytest.raises(PermissionError):
                on_post_build(public_dir, _PAGES, _REDIRECTS, collector)
        assert not (public_dir / NGINX_CONF_FILENAME).exists()


class TestWriteArtifact:
    def test_replaces_existing_file(self, tmp_path):
        target = tmp_path / NGINX_CONF_FILENAME
        target.write_text("old", encoding="utf-8")
        write_artifact(target, "new")
        assert target.read_text(encoding="utf-8") == "new"
        assert [p.name for p in tmp_path.iterdir()] == [NGINX_CONF_FILENAME]
