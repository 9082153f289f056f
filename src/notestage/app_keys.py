"""Application keys for type-safe app configuration access."""

from pathlib import Path

from aiohttp import web

from notestage.core.permalinks import RewriteTable
from notestage.core.renderer import PageRenderer

renderer_key = web.AppKey("renderer", PageRenderer)
rewrites_key = web.AppKey("rewrites", RewriteTable)
source_dir_key = web.AppKey("source_dir", Path)
verbose_key = web.AppKey("verbose", bool)
