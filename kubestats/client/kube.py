"""kubernetes-asyncio backed ResourceClient.

Every call goes through the CoreV1 API with ``_preload_content=False`` so the
raw JSON is decoded straight into dicts instead of generated model objects.
Event watches are opened here and then decoded frame by frame by
kubernetes-asyncio's ``Watch``; each frame is handed on as
``{"type": ..., "object": {...}}`` with the raw object dict.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from functools import partial
from typing import Any

import aiohttp
import structlog
from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]
from kubernetes_asyncio import config as k8s_config  # type: ignore[import-untyped]
from kubernetes_asyncio import watch as k8s_watch  # type: ignore[import-untyped]
from kubernetes_asyncio.client.rest import ApiException  # type: ignore[import-untyped]

from kubestats.client.base import (
    ENDPOINTS,
    NODE,
    POD,
    REPLICATION_CONTROLLER,
    SERVICE,
    ResourceClient,
    Subscription,
)
from kubestats.client.errors import ResourceConnectionError, ResourceQueryError
from kubestats.models.config import KubeConfig

_log = structlog.get_logger(component="client.kube")

# kind -> (all-namespaces call, namespaced call)
_LIST_CALLS: dict[str, tuple[str, str | None]] = {
    REPLICATION_CONTROLLER: (
        "list_replication_controller_for_all_namespaces",
        "list_namespaced_replication_controller",
    ),
    SERVICE: ("list_service_for_all_namespaces", "list_namespaced_service"),
    ENDPOINTS: ("list_endpoints_for_all_namespaces", "list_namespaced_endpoints"),
    NODE: ("list_node", None),
    POD: ("list_pod_for_all_namespaces", "list_namespaced_pod"),
}

# Client-side timeout margin on top of the server-side watch timeout, so the
# API server normally ends the stream first.
_WATCH_SLACK_SECONDS = 30

_TRANSPORT_ERRORS = (aiohttp.ClientError, TimeoutError)


class KubeSubscription(Subscription):
    """Watch subscription over an already-open event stream.

    Frames are decoded by kubernetes-asyncio's ``Watch``. The server-side
    ``timeout_seconds`` is always set, so ``Watch`` never reopens the stream
    itself: EOF, an ERROR frame, a malformed frame or a read failure closes
    the subscription.
    """

    def __init__(self, response: aiohttp.ClientResponse, call: Callable[..., Any], **kwargs: Any) -> None:
        self._response = response
        self._watch = k8s_watch.Watch(return_type="object")
        self._watch.stream(call, **kwargs)
        self._watch.resp = response
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def next(self) -> dict[str, Any] | None:
        while not self._closed:
            try:
                frame = await self._watch.next()
            except StopAsyncIteration:
                _log.debug("watch_stream_ended")
            except ApiException as exc:
                _log.debug("watch_closed_with_error", status=exc.status, reason=exc.reason)
            except Exception as exc:  # noqa: BLE001
                # Watch raises a bare Exception for frames without type/object.
                _log.debug("watch_read_failed", error=str(exc), error_type=type(exc).__name__)
            else:
                if isinstance(frame, dict):
                    return {"type": frame.get("type"), "object": frame.get("raw_object")}
                _log.debug("watch_frame_undecodable", size=len(frame) if isinstance(frame, str) else None)
                continue
            await self.stop()
        return None

    async def stop(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._response.close()
        await self._watch.close()


class KubeResourceClient(ResourceClient):
    """ResourceClient talking to a real cluster.

    Configuration is resolved lazily on first use: an explicit API address
    wins, otherwise the in-cluster service account, otherwise kubeconfig.
    A failure there surfaces as ``ResourceConnectionError`` and is retried on
    the next call.
    """

    def __init__(self, config: KubeConfig | None = None) -> None:
        self._config = config or KubeConfig()
        self._api_client: k8s_client.ApiClient | None = None
        self._core: k8s_client.CoreV1Api | None = None
        self._init_lock = asyncio.Lock()

    async def _load_configuration(self) -> k8s_client.Configuration:
        configuration = k8s_client.Configuration()
        if self._config.address:
            configuration.host = self._config.address
            return configuration
        try:
            k8s_config.load_incluster_config(client_configuration=configuration)
            _log.info("k8s_client_configured", source="in-cluster")
        except k8s_config.ConfigException:
            await k8s_config.load_kube_config(client_configuration=configuration)
            _log.info("k8s_client_configured", source="kubeconfig")
        return configuration

    async def _core_api(self) -> k8s_client.CoreV1Api:
        if self._core is not None:
            return self._core
        async with self._init_lock:
            if self._core is None:
                try:
                    configuration = await self._load_configuration()
                    self._api_client = k8s_client.ApiClient(configuration)
                except (k8s_config.ConfigException, OSError, ValueError) as exc:
                    raise ResourceConnectionError(f"client not created: {exc}") from exc
                self._core = k8s_client.CoreV1Api(self._api_client)
        return self._core

    async def list(self, kind: str, namespace: str | None = None, selector: str = "") -> list[dict[str, Any]]:
        if kind not in _LIST_CALLS:
            raise ValueError(f"Unsupported resource kind: {kind}")
        api = await self._core_api()
        all_namespaces_call, namespaced_call = _LIST_CALLS[kind]

        kwargs: dict[str, Any] = {"_preload_content": False}
        if selector:
            kwargs["label_selector"] = selector

        try:
            if namespace and namespaced_call is not None:
                response = await getattr(api, namespaced_call)(namespace, **kwargs)
            else:
                response = await getattr(api, all_namespaces_call)(**kwargs)
            async with response:
                if not 200 <= response.status <= 299:
                    body = await response.text()
                    raise ResourceQueryError(kind, body[:200], status=response.status)
                payload = await response.json()
        except ApiException as exc:
            raise ResourceQueryError(kind, str(exc.reason or exc), status=exc.status) from exc
        except (*_TRANSPORT_ERRORS, ValueError) as exc:
            raise ResourceQueryError(kind, str(exc) or type(exc).__name__) from exc

        items = payload.get("items") if isinstance(payload, dict) else None
        return [item for item in items or [] if isinstance(item, dict)]

    async def watch(self, namespace: str | None = None) -> Subscription:
        api = await self._core_api()
        call = partial(api.list_namespaced_event, namespace) if namespace else api.list_event_for_all_namespaces
        kwargs: dict[str, Any] = {
            "timeout_seconds": self._config.watch_timeout_seconds,
            "_request_timeout": self._config.watch_timeout_seconds + _WATCH_SLACK_SECONDS,
        }
        try:
            response = await call(watch=True, _preload_content=False, **kwargs)
            if not 200 <= response.status <= 299:
                try:
                    body = await response.text()
                finally:
                    response.release()
                raise ResourceQueryError("Event", body[:200], status=response.status)
        except ApiException as exc:
            raise ResourceQueryError("Event", str(exc.reason or exc), status=exc.status) from exc
        except (*_TRANSPORT_ERRORS, ValueError) as exc:
            raise ResourceQueryError("Event", str(exc) or type(exc).__name__) from exc
        return KubeSubscription(response, call, **kwargs)

    async def close(self) -> None:
        if self._api_client is not None:
            await self._api_client.close()
        self._api_client = None
        self._core = None
