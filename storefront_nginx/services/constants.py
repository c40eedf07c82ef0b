"""Fixed names shared by the build integration and the post-build step."""

# Only the HTML-rendering bundle contributes to the collected asset manifest
BUILD_HTML_STAGE = "build-html"

# Written at the root of the build output directory
NGINX_CONF_FILENAME = "nginx.out.conf"
NGINX_CONF_TMP_FILENAME = f".{NGINX_CONF_FILENAME}.tmp"

# Emitted by the bundler next to the built site
WEBPACK_STATS_FILENAME = "webpack.stats.json"

# Runtime chunks every page depends on, in preload order
SHARED_CHUNK_NAMES = ("webpack-runtime", "framework", "app")

PAGE_DATA_DIR = "page-data"
APP_DATA_FILE = "page-data/app-data.json"
