"""The HTTP interface: routing, listeners and the administrative endpoints."""

from __future__ import annotations

import ipaddress
import json
import logging
import re
import ssl
import threading
from dataclasses import dataclass
from functools import partial
from typing import Any, Callable, Mapping, Optional

from werkzeug.exceptions import MethodNotAllowed, NotFound
from werkzeug.routing import Map, RequestRedirect, Rule
from werkzeug.serving import BaseWSGIServer, WSGIRequestHandler, make_server
from werkzeug.wrappers import Request, Response

from . import config_views, kafka
from .metrics import CONTENT_TYPE as METRICS_CONTENT_TYPE
from .metrics import BurrowMetrics
from .responses import error_response, json_response, make_request_info, not_found_response, text_response
from .settings import Settings
from .structs import ApplicationContext

_HOSTNAME = re.compile(r"^[A-Za-z0-9]([A-Za-z0-9-]*[A-Za-z0-9])?(\.[A-Za-z0-9]([A-Za-z0-9-]*[A-Za-z0-9])?)*$")

_LEVELS_BY_NAME = {
    "debug": logging.DEBUG,
    "trace": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
}

_LEVEL_NAMES = {
    logging.DEBUG: "debug",
    logging.INFO: "info",
    logging.WARNING: "warn",
    logging.ERROR: "error",
    logging.CRITICAL: "fatal",
}

Handler = Callable[[Request, Mapping[str, str]], Response]


def _parse_address(address: str) -> Optional[tuple[str, int]]:
    """Split host:port; the host may be blank. None if the address is invalid."""
    host, sep, port_text = address.rpartition(":")
    if not sep or not port_text.isdigit():
        return None
    port = int(port_text)
    if port > 65535:
        return None
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
        try:
            ipaddress.IPv6Address(host)
        except ValueError:
            return None
        return host, port
    if host and not _HOSTNAME.match(host):
        return None
    return host, port


@dataclass
class _ListenerSpec:
    host: str
    port: int
    timeout: int
    cert_file: str = ""
    key_file: str = ""
    ssl_context: Optional[ssl.SSLContext] = None


class Coordinator:
    """Runs the HTTP API on every configured listener."""

    def __init__(
        self,
        app: ApplicationContext,
        settings: Optional[Settings] = None,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self.app = app
        self.settings = settings if settings is not None else Settings()
        self.log = log if log is not None else logging.getLogger("burrow.httpserver")
        self.metrics = BurrowMetrics()
        self._listeners: dict[str, _ListenerSpec] = {}
        self._url_map: Optional[Map] = None
        self._handlers: dict[str, Handler] = {}
        self._servers: dict[str, BaseWSGIServer] = {}
        self._threads: list[threading.Thread] = []

    def configure(self) -> None:
        """Validate every listener and build the routes; raise ValueError on bad config."""
        self.log.info("configuring")
        settings = self.settings
        if not settings.get_map("httpserver"):
            settings.set("httpserver.default.address", ":0")

        self._listeners = {}
        for name in settings.names("httpserver"):
            root = f"httpserver.{name}"
            parsed = _parse_address(settings.get_str(root + ".address"))
            if parsed is None:
                raise ValueError("invalid HTTP server listener address")
            settings.set_default(root + ".timeout", 300)
            spec = _ListenerSpec(host=parsed[0], port=parsed[1], timeout=settings.get_int(root + ".timeout"))
            if settings.is_set(root + ".tls"):
                self._configure_tls(spec, settings.get_str(root + ".tls"))
            self._listeners[name] = spec

        self._build_routes()

    def _configure_tls(self, spec: _ListenerSpec, tls_name: str) -> None:
        root = f"tls.{tls_name}"
        cert_file = self.settings.get_str(root + ".certfile")
        key_file = self.settings.get_str(root + ".keyfile")
        ca_file = self.settings.get_str(root + ".cafile")

        ca_text = None
        if ca_file:
            try:
                with open(ca_file, encoding="ascii", errors="replace") as handle:
                    ca_text = handle.read()
            except OSError as exc:
                raise ValueError(f"cannot read TLS CA file: {exc}") from exc

        if not cert_file or not key_file:
            raise ValueError("TLS HTTP server specified with missing certificate or key")
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        try:
            context.load_cert_chain(cert_file, key_file)
        except (OSError, ssl.SSLError) as exc:
            raise ValueError(f"cannot read TLS certificate or key file: {exc}") from exc
        if ca_text:
            try:
                context.load_verify_locations(cadata=ca_text)
            except (ssl.SSLError, ValueError):
                self.log.warning("no usable certificates in TLS CA file %s", ca_file)

        spec.cert_file = cert_file
        spec.key_file = key_file
        spec.ssl_context = context

    def _build_routes(self) -> None:
        routes: list[tuple[str, str, Handler]] = [
            ("GET", "/burrow/admin", self.handle_admin),
            ("GET", "/burrow/admin/ready", self.handle_ready),
            ("GET", "/metrics", self.handle_metrics),
            ("GET", "/v3/kafka", partial(kafka.handle_cluster_list, self)),
            ("GET", "/v3/kafka/<cluster>", partial(kafka.handle_cluster_detail, self)),
            ("GET", "/v3/kafka/<cluster>/topic", partial(kafka.handle_topic_list, self)),
            ("GET", "/v3/kafka/<cluster>/topic/<topic>", partial(kafka.handle_topic_detail, self)),
            (
                "GET",
                "/v3/kafka/<cluster>/topic/<topic>/consumers",
                partial(kafka.handle_topic_consumer_list, self),
            ),
            ("GET", "/v3/kafka/<cluster>/consumer", partial(kafka.handle_consumer_list, self)),
            ("GET", "/v3/kafka/<cluster>/consumer/<consumer>", partial(kafka.handle_consumer_detail, self)),
            (
                "GET",
                "/v3/kafka/<cluster>/consumer/<consumer>/status",
                partial(kafka.handle_consumer_status, self),
            ),
            (
                "GET",
                "/v3/kafka/<cluster>/consumer/<consumer>/lag",
                partial(kafka.handle_consumer_status_complete, self),
            ),
            ("GET", "/v3/config", partial(config_views.config_main, self)),
            ("GET", "/v3/config/storage", partial(config_views.config_storage_list, self)),
            ("GET", "/v3/config/storage/<name>", partial(config_views.config_storage_detail, self)),
            ("GET", "/v3/config/evaluator", partial(config_views.config_evaluator_list, self)),
            ("GET", "/v3/config/evaluator/<name>", partial(config_views.config_evaluator_detail, self)),
            ("GET", "/v3/config/cluster", partial(config_views.config_cluster_list, self)),
            ("GET", "/v3/config/cluster/<cluster>", partial(kafka.handle_cluster_detail, self)),
            ("GET", "/v3/config/consumer", partial(config_views.config_consumer_list, self)),
            ("GET", "/v3/config/consumer/<name>", partial(config_views.config_consumer_detail, self)),
            ("GET", "/v3/config/notifier", partial(config_views.config_notifier_list, self)),
            ("GET", "/v3/config/notifier/<name>", partial(config_views.config_notifier_detail, self)),
            ("DELETE", "/v3/kafka/<cluster>/consumer/<consumer>", partial(kafka.handle_consumer_delete, self)),
            (
                "DELETE",
                "/v3/kafka/<cluster>/consumer/<consumer>/topic/<topic>",
                partial(kafka.handle_consumer_delete, self),
            ),
            ("GET", "/v3/admin/loglevel", self.get_log_level),
            ("POST", "/v3/admin/loglevel", self.set_log_level),
        ]
        rules = []
        self._handlers = {}
        for number, (method, path, handler) in enumerate(routes):
            endpoint = f"{method} {path} #{number}"
            rules.append(Rule(path, endpoint=endpoint, methods=[method]))
            self._handlers[endpoint] = handler
        self._url_map = Map(rules)

    @property
    def addresses(self) -> dict[str, tuple[str, int]]:
        """The host and port each running listener is bound to."""
        return {name: server.server_address[:2] for name, server in self._servers.items()}

    def start(self) -> None:
        """Bind every listener, then serve each in its own thread.

        If any listener cannot be bound, those already bound are closed and the
        error is raised.
        """
        self.log.info("starting")
        if self._url_map is None:
            raise RuntimeError("coordinator is not configured")

        bound: dict[str, BaseWSGIServer] = {}
        for name, spec in self._listeners.items():
            handler = type("_TimedRequestHandler", (WSGIRequestHandler,), {"timeout": spec.timeout or None})
            try:
                server = make_server(
                    spec.host or "0.0.0.0",
                    spec.port,
                    self,
                    threaded=True,
                    request_handler=handler,
                    ssl_context=spec.ssl_context,
                )
            except (OSError, SystemExit) as exc:
                self.log.error("failed to listen on %s:%s: %s", spec.host, spec.port, exc)
                for other in bound.values():
                    try:
                        other.server_close()
                    except OSError as close_exc:
                        self.log.error("could not close listener: %s", close_exc)
                if isinstance(exc, OSError):
                    raise
                raise OSError(f"cannot listen on {spec.host}:{spec.port}") from exc
            self.log.info("started listener %s:%s", *server.server_address[:2])
            bound[name] = server

        self._servers = bound
        for name, server in bound.items():
            thread = threading.Thread(target=server.serve_forever, name=f"http-{name}", daemon=True)
            thread.start()
            self._threads.append(thread)

    def stop(self) -> None:
        """Close every listener; raise RuntimeError if any failed to close."""
        self.log.info("shutdown")
        errors = []
        for server in self._servers.values():
            try:
                server.shutdown()
                server.server_close()
            except OSError as exc:
                errors.append(exc)
        for thread in self._threads:
            thread.join(timeout=5)
        self._servers = {}
        self._threads = []
        if errors:
            self.log.error("errors shutting down: %s", errors)
            raise RuntimeError("error shutting down HTTP servers")

    def dispatch(self, request: Request) -> Response:
        """Route a request to its handler and return the response."""
        if self._url_map is None:
            raise RuntimeError("coordinator is not configured")
        adapter = self._url_map.bind_to_environ(request.environ)
        try:
            endpoint, params = adapter.match()
        except RequestRedirect as exc:
            return exc.get_response(request.environ)
        except MethodNotAllowed as exc:
            allowed = ", ".join(sorted(exc.valid_methods or []))
            if request.method == "OPTIONS":
                return Response(b"", status=200, headers={"Allow": allowed})
            return Response(
                "Method Not Allowed\n",
                status=405,
                content_type="text/plain; charset=utf-8",
                headers={"Allow": allowed},
            )
        except NotFound:
            return not_found_response()
        return self._handlers[endpoint](request, params)

    def __call__(self, environ: dict, start_response: Callable) -> Any:
        response = self.dispatch(Request(environ))
        return response(environ, start_response)

    def handle_admin(self, request: Request, params: Mapping[str, str]) -> Response:
        """Health check."""
        return text_response(self.settings, 200, "GOOD")

    def handle_ready(self, request: Request, params: Mapping[str, str]) -> Response:
        """Readiness check, driven by the application's ready flag."""
        if self.app.app_ready:
            return text_response(self.settings, 200, "READY")
        return text_response(self.settings, 503, "STARTING")

    def handle_metrics(self, request: Request, params: Mapping[str, str]) -> Response:
        """Refresh the gauges and expose them in Prometheus text format."""
        self.metrics.update(self.app)
        return Response(self.metrics.render(), status=200, content_type=METRICS_CONTENT_TYPE)

    def get_log_level(self, request: Request, params: Mapping[str, str]) -> Response:
        level = self.app.log_level
        name = _LEVEL_NAMES.get(level, logging.getLevelName(level).lower())
        return json_response(
            self.settings,
            200,
            {
                "error": False,
                "message": "log level returned",
                "level": name,
                "request": make_request_info(request),
            },
        )

    def set_log_level(self, request: Request, params: Mapping[str, str]) -> Response:
        try:
            body = json.loads(request.get_data(as_text=True))
        except ValueError:
            body = ...
        if body is None:
            body = {}
        level_name = body.get("level", "") if isinstance(body, dict) else None
        if not isinstance(level_name, str):
            return error_response(self.settings, request, 400, "could not decode message body")

        level = _LEVELS_BY_NAME.get(level_name.lower())
        if level is None:
            return error_response(self.settings, request, 404, "unknown log level")
        self.app.log_level = level
        self.app.logger.setLevel(level)
        return json_response(
            self.settings,
            200,
            {"error": False, "message": "set log level", "request": make_request_info(request)},
        )