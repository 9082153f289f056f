"""aiohttp preview server for Notestage.

Application factory and route registration. The rewrite table is resolved
once when the application is created; pages are rendered on request.
"""

from aiohttp import web

from notestage.api.pages import create_pages_routes
from notestage.api.routes import create_routes_routes
from notestage.app_keys import renderer_key, rewrites_key, source_dir_key, verbose_key
from notestage.config import Config
from notestage.core.build import SiteBuilder


def create_app(config: Config, *, verbose: bool = False) -> web.Application:
    """Create aiohttp application.

    Args:
        config: Application configuration
        verbose: Log render warnings

    Returns:
        Configured aiohttp application

    Raises:
        FileNotFoundError: If the source directory doesn't exist
        PermalinkCollisionError: If served paths collide under the "error" policy
    """
    app = web.Application()

    builder = SiteBuilder(config)

    app[renderer_key] = builder.renderer
    app[rewrites_key] = builder.resolve()
    app[source_dir_key] = config.docs.source_dir
    app[verbose_key] = verbose

    app.router.add_routes(create_pages_routes())
    app.router.add_routes(create_routes_routes())

    return app


def run_server(config: Config, *, verbose: bool = False) -> None:
    """Run the server.

    Args:
        config: Application configuration
        verbose: Log render warnings
    """
    app = create_app(config, verbose=verbose)
    web.run_app(app, host=config.server.host, port=config.server.port)
