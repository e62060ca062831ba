"""An HTTP server assembled from plugins: their APIs, middlewares and static files."""

from __future__ import annotations

import gzip
import mimetypes
import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Iterable

import yaml
from werkzeug.exceptions import HTTPException
from werkzeug.http import http_date
from werkzeug.routing import Map, Rule
from werkzeug.security import safe_join
from werkzeug.wrappers import Request
from werkzeug.wrappers import Response as HttpResponse

from . import pm3_plugins, register
from .pm3_api import ApiContext, Handler
from .pm3_plugins import AccessConfig, FrontendFilesProvider, PluginApis, PluginMiddleware

NOT_FOUND_CONTENT = b"404 page not found"
EXPIRES = timedelta(days=7)
CACHE_CONTROL = f"public, max-age={3600 * 24 * 7}"
SYSTEM_APIS_PATH = "/_system/apis"

_GZIP_EXCLUDED_EXTENSIONS = (".png", ".gif", ".jpeg", ".jpg")

_system_plugins: list[Any] = []
_index_handler: Handler | None = None


def add_system_plugin(*plugins: Any) -> None:
    """Plugins included in every server built afterwards, before the named ones."""
    _system_plugins.extend(plugins)


def set_index_html_handler(handler: Handler | None) -> None:
    """The handler serving ``/`` and any route nothing else claims."""
    global _index_handler
    _index_handler = handler


def add_expires(ctx: ApiContext) -> None:
    """Let clients cache the response for a week."""
    ctx.set_header("Expires", http_date(datetime.now(timezone.utc) + EXPIRES))
    ctx.set_header("Cache-Control", CACHE_CONTROL)


def _to_rule(path: str) -> tuple[str, frozenset[str]]:
    """Turn ``/a/:id/*rest`` into a routing rule; also return the catch-all names."""
    segments: list[str] = []
    catch_all: set[str] = set()
    for seg in path.split("/"):
        if len(seg) > 1 and seg[0] == ":":
            segments.append(f"<{seg[1:]}>")
        elif len(seg) > 1 and seg[0] == "*":
            segments.append(f"<path:{seg[1:]}>")
            catch_all.add(seg[1:])
        else:
            segments.append(seg)
    rule = "/".join(segments)
    if not rule.startswith("/"):
        rule = "/" + rule
    return rule, frozenset(catch_all)


def _request_uri(request: Request) -> str:
    query = request.query_string.decode("latin-1")
    return request.path + (f"?{query}" if query else "")


def _written(ctx: ApiContext) -> bool:
    return "Content-Type" in ctx.headers


def _run(ctx: ApiContext, handlers: Iterable[Handler]) -> None:
    for handler in handlers:
        if ctx.aborted:
            break
        handler(ctx)


def _api_no_route(ctx: ApiContext) -> None:
    if _request_uri(ctx.request).startswith("/api"):
        ctx.abort_with_json(404, {"code": 404, "msg": "not found"})


def _compress(request: Request, response: HttpResponse) -> None:
    if "gzip" not in request.headers.get("Accept-Encoding", ""):
        return
    if request.path.lower().endswith(_GZIP_EXCLUDED_EXTENSIONS):
        return
    if "Content-Encoding" in response.headers:
        return
    data = response.get_data()
    if not data:
        return
    response.set_data(gzip.compress(data))
    response.headers["Content-Encoding"] = "gzip"
    response.headers["Vary"] = "Accept-Encoding"


@dataclass
class _Route:
    handlers: list[Handler]
    catch_all: frozenset[str]


@dataclass
class ServerDetail:
    """A description of a built server."""


class Server:
    """A WSGI application routing requests to plugin handlers."""

    def __init__(self, index_handler: Handler | None = None) -> None:
        self.permits: dict[str, list[str]] = {}
        self._map = Map(strict_slashes=False)
        self._routes: dict[int, _Route] = {}
        self._frontend_top: set[str] = set()
        self._no_route: list[Handler] = [
            h for h in (_api_no_route, self._assets_no_route, index_handler) if h is not None
        ]

    def _add(self, method: str, path: str, handlers: list[Handler]) -> None:
        rule, catch_all = _to_rule(path)
        endpoint = len(self._routes)
        self._routes[endpoint] = _Route(handlers, catch_all)
        self._map.add(Rule(rule, methods=[method.upper()], endpoint=endpoint))

    def _add_static(self, prefix: str, directory: str, middlewares: list[Handler]) -> None:
        base = "/" + prefix.strip("/")

        def serve(ctx: ApiContext) -> None:
            self._serve_file(ctx, directory, ctx.param("filepath").lstrip("/"))

        self._add("GET", base, [*middlewares, serve])
        self._add("GET", base.rstrip("/") + "/*filepath", [*middlewares, serve])
        self._frontend_top.add(prefix.strip("/").split("/")[0])

    def _serve_file(self, ctx: ApiContext, directory: str, relative: str) -> None:
        full = safe_join(directory, relative) if relative else directory
        if full is not None and os.path.isdir(full):
            full = os.path.join(full, "index.html")
        if full is None or not os.path.isfile(full):
            self._not_found(ctx)
            return
        with open(full, "rb") as fh:
            content = fh.read()
        content_type = mimetypes.guess_type(full)[0] or "application/octet-stream"
        ctx.data(200, content_type, content)

    def _assets_no_route(self, ctx: ApiContext) -> None:
        parts = [p for p in _request_uri(ctx.request).split("/") if p]
        if parts and parts[0] in self._frontend_top:
            ctx.data(404, "text/html; charset=utf-8", NOT_FOUND_CONTENT)
            ctx.abort()

    def _not_found(self, ctx: ApiContext) -> None:
        ctx.status = 404
        _run(ctx, self._no_route)
        if not _written(ctx):
            ctx.data(404, "text/plain", NOT_FOUND_CONTENT)

    def wsgi_app(self, environ: dict[str, Any], start_response: Callable[..., Any]) -> Iterable[bytes]:
        request = Request(environ)
        adapter = self._map.bind_to_environ(environ)
        try:
            endpoint, args = adapter.match()
        except HTTPException:
            ctx = ApiContext(request)
            self._not_found(ctx)
        else:
            route = self._routes[endpoint]
            params = {
                k: ("/" + str(v) if k in route.catch_all else str(v)) for k, v in args.items()
            }
            ctx = ApiContext(request, params)
            _run(ctx, route.handlers)
        response = ctx.to_response()
        _compress(request, response)
        return response(environ, start_response)

    def __call__(self, environ: dict[str, Any], start_response: Callable[..., Any]) -> Iterable[bytes]:
        return self.wsgi_app(environ, start_response)


class ServiceBuilder:
    """Builds a Server from a list of plugins."""

    def __init__(self, plugins: Iterable[Any]) -> None:
        self.plugins = list(plugins)

    def build(self) -> Server:
        index_handler = _index_handler
        server = Server(index_handler)
        if index_handler is not None:
            server._add("GET", "/", [index_handler])

        middlewares: list[Any] = []
        for plugin in self.plugins:
            if isinstance(plugin, AccessConfig):
                for key, rules in (plugin.access() or {}).items():
                    server.permits.setdefault(key, []).extend(rules)
            if isinstance(plugin, PluginMiddleware):
                middlewares.extend(plugin.middlewares())
        pm3_plugins.sort_middlewares(middlewares)

        apis_by_plugin: dict[str, list[Any]] = {}
        for plugin in self.plugins:
            if isinstance(plugin, FrontendFilesProvider):
                for files in plugin.files():
                    found = pm3_plugins.check_middlewares(middlewares, "GET", files.path) or []
                    server._add_static(files.path, files.directory, found)
            if isinstance(plugin, PluginApis):
                for api in plugin.apis():
                    found = pm3_plugins.check_middlewares(middlewares, api.method, api.path) or []
                    apis_by_plugin.setdefault(plugin.name, []).append(api)
                    server._add(api.method, api.path, [*found, api.handle])

        handler_paths = {
            name: [f"{a.method} {a.path}" for a in sorted(apis, key=lambda a: (a.path, a.method))]
            for name, apis in apis_by_plugin.items()
        }
        listing = yaml.safe_dump(handler_paths, allow_unicode=True, default_flow_style=False)

        def system_apis(ctx: ApiContext) -> None:
            ctx.data(200, "text/plain; charset=utf-8", listing)

        server._add("GET", SYSTEM_APIS_PATH, [system_apis])
        register.call(Server, server)
        return server

    def detail(self) -> ServerDetail:
        return ServerDetail()


def create_server(*names: str) -> ServiceBuilder:
    """A builder over the system plugins and the named ones (all registered, if none)."""
    if not names:
        names = tuple(pm3_plugins.all_names())
    plugins = [*_system_plugins, *pm3_plugins.create(*names)]
    return ServiceBuilder(plugins)