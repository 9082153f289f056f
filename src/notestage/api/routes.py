"""Routes API endpoint.

Exposes the rewrite table the server routes with.
"""

from aiohttp import web

from notestage.app_keys import rewrites_key


def create_routes_routes() -> list[web.RouteDef]:
    return [
        web.get("/api/routes", get_routes),
    ]


async def get_routes(request: web.Request) -> web.Response:
    rewrites = request.app[rewrites_key]
    return web.json_response({"routes": rewrites.to_dict()})
