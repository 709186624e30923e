"""Handlers that report the running configuration."""

from __future__ import annotations

from typing import Any, Callable, Mapping

from werkzeug.wrappers import Request, Response

from .kafka import get_client_profile
from .responses import error_response, json_response, make_request_info
from .settings import Settings
from .structs import (
    ConsumerModuleConfig,
    EmailNotifierConfig,
    EvaluatorModuleConfig,
    HTTPNotifierConfig,
    NullNotifierConfig,
    SlackNotifierConfig,
    StorageModuleConfig,
)


def _int32(value: int) -> int:
    """Wrap an integer into the signed 32-bit range."""
    return ((value + 2**31) % 2**32) - 2**31


def _module_list(coordinator: Any, request: Request, section: str) -> Response:
    settings: Settings = coordinator.settings
    return json_response(
        settings,
        200,
        {
            "error": False,
            "message": "module list returned",
            "request": make_request_info(request),
            "coordinator": section,
            "modules": settings.names(section),
        },
    )


def _module_detail(coordinator: Any, request: Request, message: str, module: Any) -> Response:
    return json_response(
        coordinator.settings,
        200,
        {
            "error": False,
            "message": message,
            "module": module,
            "request": make_request_info(request),
        },
    )


def config_main(coordinator: Any, request: Request, params: Mapping[str, str]) -> Response:
    """The general, logging, zookeeper and HTTP listener settings."""
    settings: Settings = coordinator.settings
    general = {
        "pidfile": settings.get_str("general.pidfile"),
        "stdout-logfile": settings.get_str("general.stdout-logfile"),
        "access-control-allow-origin": settings.get_str("general.access-control-allow-origin"),
    }
    logging_config = {
        "filename": settings.get_str("logging.filename"),
        "max-size": settings.get_int("logging.maxsize"),
        "max-backups": settings.get_int("logging.maxbackups"),
        "max-age": settings.get_int("logging.maxage"),
        "use-local-time": settings.get_bool("logging.use-localtime"),
        "use-compression": settings.get_bool("logging.use-compression"),
        "level": settings.get_str("logging.level"),
    }
    zookeeper = {
        "servers": settings.get_list("zookeeper.servers"),
        "timeout": settings.get_int("zookeeper.timeout"),
        "root-path": settings.get_str("zookeeper.root-path"),
    }
    servers = {
        name: {
            "address": settings.get_str(f"httpserver.{name}.address"),
            "tls": settings.get_str(f"httpserver.{name}.tls"),
            "timeout": settings.get_int(f"httpserver.{name}.timeout"),
        }
        for name in settings.names("httpserver")
    }
    return json_response(
        settings,
        200,
        {
            "error": False,
            "message": "main config returned",
            "request": make_request_info(request),
            "general": general,
            "logging": logging_config,
            "zookeeper": zookeeper,
            "httpserver": servers,
        },
    )


def config_storage_list(coordinator: Any, request: Request, params: Mapping[str, str]) -> Response:
    return _module_list(coordinator, request, "storage")


def config_consumer_list(coordinator: Any, request: Request, params: Mapping[str, str]) -> Response:
    return _module_list(coordinator, request, "consumer")


def config_cluster_list(coordinator: Any, request: Request, params: Mapping[str, str]) -> Response:
    return _module_list(coordinator, request, "cluster")


def config_evaluator_list(coordinator: Any, request: Request, params: Mapping[str, str]) -> Response:
    return _module_list(coordinator, request, "evaluator")


def config_notifier_list(coordinator: Any, request: Request, params: Mapping[str, str]) -> Response:
    return _module_list(coordinator, request, "notifier")


def _module_root(coordinator: Any, section: str, params: Mapping[str, str]) -> str | None:
    name = params.get("name", "")
    root = f"{section}.{name}"
    if not name or not coordinator.settings.is_set(root):
        return None
    return root


def config_storage_detail(coordinator: Any, request: Request, params: Mapping[str, str]) -> Response:
    root = _module_root(coordinator, "storage", params)
    if root is None:
        return error_response(coordinator.settings, request, 404, "storage module not found")
    settings: Settings = coordinator.settings
    module = StorageModuleConfig(
        class_name=settings.get_str(root + ".class-name"),
        intervals=settings.get_int(root + ".intervals"),
        min_distance=settings.get_int(root + ".min-distance"),
        group_allowlist=settings.get_str(root + ".group-allowlist"),
        expire_group=settings.get_int(root + ".expire-group"),
    )
    return _module_detail(coordinator, request, "storage module detail returned", module)


def config_consumer_detail(coordinator: Any, request: Request, params: Mapping[str, str]) -> Response:
    root = _module_root(coordinator, "consumer", params)
    if root is None:
        return error_response(coordinator.settings, request, 404, "consumer module not found")
    settings: Settings = coordinator.settings
    module = ConsumerModuleConfig(
        class_name=settings.get_str(root + ".class-name"),
        cluster=settings.get_str(root + ".cluster"),
        servers=settings.get_list(root + ".servers"),
        group_allowlist=settings.get_str(root + ".group-allowlist"),
        zookeeper_path=settings.get_str(root + ".zookeeper-path"),
        zookeeper_timeout=_int32(settings.get_int(root + ".zookeeper-timeout")),
        client_profile=get_client_profile(settings, settings.get_str(root + ".client-profile")),
        offsets_topic=settings.get_str(root + ".offsets-topic"),
        start_latest=settings.get_bool(root + ".start-latest"),
    )
    return _module_detail(coordinator, request, "consumer module detail returned", module)


def config_evaluator_detail(coordinator: Any, request: Request, params: Mapping[str, str]) -> Response:
    root = _module_root(coordinator, "evaluator", params)
    if root is None:
        return error_response(coordinator.settings, request, 404, "evaluator module not found")
    settings: Settings = coordinator.settings
    module = EvaluatorModuleConfig(
        class_name=settings.get_str(root + ".class-name"),
        expire_cache=settings.get_int(root + ".expire-cache"),
    )
    return _module_detail(coordinator, request, "evaluator module detail returned", module)


def _notifier_common(settings: Settings, root: str) -> dict[str, Any]:
    return {
        "class_name": settings.get_str(root + ".class-name"),
        "group_allowlist": settings.get_str(root + ".group-allowlist"),
        "interval": settings.get_int(root + ".interval"),
        "threshold": settings.get_int(root + ".threshold"),
        "template_open": settings.get_str(root + ".template-open"),
        "template_close": settings.get_str(root + ".template-close"),
        "extras": settings.get_str_map(root + ".extras"),
        "send_close": settings.get_bool(root + ".send-close"),
    }


def _http_notifier(settings: Settings, root: str) -> HTTPNotifierConfig:
    return HTTPNotifierConfig(
        **_notifier_common(settings, root),
        timeout=settings.get_int(root + ".timeout"),
        keepalive=settings.get_int(root + ".keepalive"),
        url_open=settings.get_str(root + ".url-open"),
        url_close=settings.get_str(root + ".url-close"),
        method_open=settings.get_str(root + ".method-open"),
        method_close=settings.get_str(root + ".method-close"),
        extra_ca=settings.get_str(root + ".extra-ca"),
        no_verify=settings.get_str(root + ".noverify"),
    )


def _slack_notifier(settings: Settings, root: str) -> SlackNotifierConfig:
    return SlackNotifierConfig(
        **_notifier_common(settings, root),
        timeout=settings.get_int(root + ".timeout"),
        keepalive=settings.get_int(root + ".keepalive"),
        channel=settings.get_str(root + ".channel"),
        username=settings.get_str(root + ".username"),
        icon_url=settings.get_str(root + ".icon-url"),
        icon_emoji=settings.get_str(root + ".icon-emoji"),
    )


def _email_notifier(settings: Settings, root: str) -> EmailNotifierConfig:
    return EmailNotifierConfig(
        **_notifier_common(settings, root),
        server=settings.get_str(root + ".server"),
        port=settings.get_int(root + ".port"),
        auth_type=settings.get_str(root + ".auth-type"),
        username=settings.get_str(root + ".username"),
        from_address=settings.get_str(root + ".from"),
        to=settings.get_str(root + ".to"),
        extra_ca=settings.get_str(root + ".extra-ca"),
        no_verify=settings.get_str(root + ".noverify"),
    )


def _null_notifier(settings: Settings, root: str) -> NullNotifierConfig:
    return NullNotifierConfig(**_notifier_common(settings, root))


_NOTIFIER_BUILDERS: dict[str, Callable[[Settings, str], Any]] = {
    "http": _http_notifier,
    "email": _email_notifier,
    "slack": _slack_notifier,
    "null": _null_notifier,
}


def config_notifier_detail(coordinator: Any, request: Request, params: Mapping[str, str]) -> Response:
    """Detail of a notifier, shaped by its class; an unknown class gets an empty reply."""
    root = _module_root(coordinator, "notifier", params)
    if root is None:
        return error_response(coordinator.settings, request, 404, "notifier module not found")
    settings: Settings = coordinator.settings
    builder = _NOTIFIER_BUILDERS.get(settings.get_str(root + ".class-name"))
    if builder is None:
        return Response(b"", status=200)
    return _module_detail(
        coordinator, request, "notifier module detail returned", builder(settings, root)
    )