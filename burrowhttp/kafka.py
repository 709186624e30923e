"""Handlers for the cluster, topic and consumer endpoints."""

from __future__ import annotations

from typing import Any, Mapping, Optional

from werkzeug.wrappers import Request, Response

from .responses import error_response, json_response, make_request_info
from .settings import Settings
from .structs import (
    ClientProfile,
    ClusterModuleConfig,
    EvaluatorRequest,
    SASLProfile,
    StatusCode,
    StorageRequest,
    StorageRequestType,
    TLSProfile,
)


def _ok(coordinator: Any, request: Request, message: str, status: int = 200, **body: Any) -> Response:
    payload = {"error": False, "message": message, **body, "request": make_request_info(request)}
    return json_response(coordinator.settings, status, payload)


def _not_found(coordinator: Any, request: Request, message: str) -> Response:
    return error_response(coordinator.settings, request, 404, message)


def get_tls_profile(settings: Settings, name: str) -> Optional[TLSProfile]:
    """The named TLS profile, or None if it is not configured."""
    root = f"tls.{name}"
    if not name or not settings.is_set(root):
        return None
    return TLSProfile(
        name=name,
        cert_file=settings.get_str(root + ".certfile"),
        key_file=settings.get_str(root + ".keyfile"),
        ca_file=settings.get_str(root + ".cafile"),
        no_verify=settings.get_bool(root + ".noverify"),
    )


def get_sasl_profile(settings: Settings, name: str) -> Optional[SASLProfile]:
    """The named SASL profile, or None if it is not configured."""
    root = f"sasl.{name}"
    if not name or not settings.is_set(root):
        return None
    return SASLProfile(
        name=name,
        handshake_first=settings.get_bool(root + ".handshake-first"),
        username=settings.get_str(root + ".username"),
    )


def get_client_profile(settings: Settings, name: str) -> ClientProfile:
    root = f"client-profile.{name}"
    return ClientProfile(
        name=name,
        client_id=settings.get_str(root + ".client-id"),
        kafka_version=settings.get_str(root + ".kafka-version"),
        tls=get_tls_profile(settings, settings.get_str(root + ".tls")),
        sasl=get_sasl_profile(settings, settings.get_str(root + ".sasl")),
    )


def handle_cluster_list(coordinator: Any, request: Request, params: Mapping[str, str]) -> Response:
    response = coordinator.app.ask_storage(StorageRequest(StorageRequestType.FETCH_CLUSTERS))
    return _ok(coordinator, request, "cluster list returned", clusters=list(response or []))


def handle_cluster_detail(coordinator: Any, request: Request, params: Mapping[str, str]) -> Response:
    settings = coordinator.settings
    name = params.get("cluster", "")
    root = f"cluster.{name}"
    if not name or not settings.is_set(root):
        return _not_found(coordinator, request, "cluster module not found")
    module = ClusterModuleConfig(
        class_name=settings.get_str(root + ".class-name"),
        servers=settings.get_list(root + ".servers"),
        topic_refresh=settings.get_int(root + ".topic-refresh"),
        offset_refresh=settings.get_int(root + ".offset-refresh"),
        client_profile=get_client_profile(settings, settings.get_str(root + ".client-profile")),
    )
    return _ok(coordinator, request, "cluster module detail returned", module=module)


def handle_topic_list(coordinator: Any, request: Request, params: Mapping[str, str]) -> Response:
    response = coordinator.app.ask_storage(
        StorageRequest(StorageRequestType.FETCH_TOPICS, cluster=params.get("cluster", ""))
    )
    if response is None:
        return _not_found(coordinator, request, "cluster not found")
    return _ok(coordinator, request, "topic list returned", topics=list(response))


def handle_topic_detail(coordinator: Any, request: Request, params: Mapping[str, str]) -> Response:
    response = coordinator.app.ask_storage(
        StorageRequest(
            StorageRequestType.FETCH_TOPIC,
            cluster=params.get("cluster", ""),
            topic=params.get("topic", ""),
        )
    )
    if response is None:
        return _not_found(coordinator, request, "cluster or topic not found")
    return _ok(coordinator, request, "topic offsets returned", offsets=list(response))


def handle_topic_consumer_list(coordinator: Any, request: Request, params: Mapping[str, str]) -> Response:
    response = coordinator.app.ask_storage(
        StorageRequest(
            StorageRequestType.FETCH_CONSUMERS_FOR_TOPIC,
            cluster=params.get("cluster", ""),
            topic=params.get("topic", ""),
        )
    )
    if response is None:
        return _not_found(coordinator, request, "cluster not found")
    return _ok(coordinator, request, "consumers of topic returned", consumers=list(response))


def handle_consumer_list(coordinator: Any, request: Request, params: Mapping[str, str]) -> Response:
    response = coordinator.app.ask_storage(
        StorageRequest(StorageRequestType.FETCH_CONSUMERS, cluster=params.get("cluster", ""))
    )
    if response is None:
        return _not_found(coordinator, request, "cluster not found")
    return _ok(coordinator, request, "consumer list returned", consumers=list(response))


def handle_consumer_detail(coordinator: Any, request: Request, params: Mapping[str, str]) -> Response:
    response = coordinator.app.ask_storage(
        StorageRequest(
            StorageRequestType.FETCH_CONSUMER,
            cluster=params.get("cluster", ""),
            group=params.get("consumer", ""),
        )
    )
    if response is None:
        return _not_found(coordinator, request, "cluster or consumer not found")
    return _ok(coordinator, request, "consumer detail returned", topics=response)


def _consumer_status(coordinator: Any, request: Request, params: Mapping[str, str], show_all: bool) -> Response:
    status = coordinator.app.ask_evaluator(
        EvaluatorRequest(
            cluster=params.get("cluster", ""),
            group=params.get("consumer", ""),
            show_all=show_all,
        )
    )
    code = 404 if status.status == StatusCode.NOTFOUND else 200
    return _ok(coordinator, request, "consumer status returned", status=code, **{"status": status}) if False else \
        json_response(
            coordinator.settings,
            code,
            {
                "error": False,
                "message": "consumer status returned",
                "status": status,
                "request": make_request_info(request),
            },
        )


def handle_consumer_status(coordinator: Any, request: Request, params: Mapping[str, str]) -> Response:
    return _consumer_status(coordinator, request, params, show_all=False)


def handle_consumer_status_complete(coordinator: Any, request: Request, params: Mapping[str, str]) -> Response:
    return _consumer_status(coordinator, request, params, show_all=True)


def handle_consumer_delete(coordinator: Any, request: Request, params: Mapping[str, str]) -> Response:
    """Ask storage to drop a group, or one topic of it; no reply is awaited."""
    coordinator.app.storage_channel.put(
        StorageRequest(
            StorageRequestType.SET_DELETE_GROUP,
            cluster=params.get("cluster", ""),
            group=params.get("consumer", ""),
            topic=params.get("topic", ""),
        )
    )
    return _ok(coordinator, request, "consumer group removed")