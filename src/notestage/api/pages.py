"""Pages API endpoint.

Resolves a served path through the rewrite table, renders the source
document and returns JSON with metadata, ToC, and HTML content.
"""

import logging
from datetime import UTC, datetime
from email.utils import formatdate
from hashlib import md5
from time import mktime

from aiohttp import web

from notestage.app_keys import renderer_key, rewrites_key, source_dir_key, verbose_key
from notestage.core.content import load_content_file
from notestage.core.permalinks import RewriteTable
from notestage.core.types import SourcePath

logger = logging.getLogger(__name__)


def create_pages_routes() -> list[web.RouteDef]:
    return [
        web.get("/api/pages/{path:.*}", get_page),
    ]


async def get_page(request: web.Request) -> web.Response:
    path = request.match_info["path"]
    rewrites = request.app[rewrites_key]
    renderer = request.app[renderer_key]
    source_dir = request.app[source_dir_key]

    source_path = _resolve_source(rewrites, path)
    source_file = source_dir / source_path if source_path is not None else None
    if source_file is None or not source_file.is_file():
        return web.json_response(
            {"error": "Page not found", "path": path},
            status=404,
        )

    try:
        content = load_content_file(source_dir, source_file)
        result = renderer.render(content)
    except Exception as e:
        logger.exception(f"Failed to render {source_path}")
        return web.json_response(
            {"error": f"Render failed: {e}", "path": path},
            status=500,
        )

    if request.app[verbose_key] and result.warnings:
        for warning in result.warnings:
            logger.warning(f"{source_path}: {warning}")

    last_modified = datetime.fromtimestamp(source_file.stat().st_mtime, tz=UTC)

    etag = _compute_etag(result.html)
    if request.headers.get("If-None-Match") == etag:
        return web.Response(status=304)

    response_data = {
        "meta": {
            "title": result.title,
            "path": f"/{path}" if path else "/",
            "source_file": str(source_path),
            "last_modified": last_modified.isoformat(),
        },
        "toc": [
            {"level": entry.level, "title": entry.title, "id": entry.id}
            for entry in result.toc
        ],
        "content": result.html,
    }

    return web.json_response(
        response_data,
        headers={
            "ETag": etag,
            "Last-Modified": formatdate(mktime(last_modified.timetuple()), usegmt=True),
            "Cache-Control": "private, max-age=60",
        },
    )


def _resolve_source(rewrites: RewriteTable, path: str) -> SourcePath | None:
    """Find the source served at a path, trying ``.md`` and ``index.md`` forms.

    Only served paths are matched. A file with a permalink is not reachable
    at its default path.
    """
    stem = path.strip("/")
    candidates = [path, f"{stem}.md", f"{stem}/index.md" if stem else "index.md"]
    for candidate in candidates:
        source_path = rewrites.source_for(candidate)
        if source_path is not None:
            return source_path
    return None


def _compute_etag(content: str) -> str:
    # First 16 hex chars (64 bits) are enough for cache validation
    content_hash = md5(content.encode("utf-8"), usedforsecurity=False).hexdigest()[:16]
    return f'"{content_hash}"'
