"""
Resource fetcher: lists one GroupVersionResource collection from the cluster
"""
import os
from typing import Any, Dict, List, Optional, Protocol

from kubernetes import client, config
from kubernetes.client.rest import ApiException

from gvr_exporter.core.errors import ClientInitError, FetchError
from gvr_exporter.core.logging_config import LoggingConfig
from gvr_exporter.core.models import ResourceItem, ResourceSelector

logger = LoggingConfig.get_logger(__name__)


class ResourceFetcher(Protocol):
    """Anything able to list a resource collection as JSON-like dicts"""

    def list(self, selector: ResourceSelector, timeout: Optional[float] = None) -> List[ResourceItem]:
        ...


def build_api_client(kubeconfig_path: str) -> client.ApiClient:
    """
    Build an ApiClient from a kubeconfig file, or from the in-cluster service
    account when that file does not exist and we run inside a pod

    Raises:
        ClientInitError: neither configuration could be loaded
    """
    in_cluster = bool(os.environ.get("KUBERNETES_SERVICE_HOST"))
    if not os.path.exists(kubeconfig_path) and in_cluster:
        try:
            configuration = client.Configuration()
            config.load_incluster_config(client_configuration=configuration)
        except config.ConfigException as e:
            raise ClientInitError(f"failed to load in-cluster configuration: {e}") from e
        logger.info("Using in-cluster configuration")
        return client.ApiClient(configuration=configuration)

    try:
        api_client = config.new_client_from_config(config_file=kubeconfig_path)
    except Exception as e:
        raise ClientInitError(
            f"failed to build kubeconfig from {kubeconfig_path}: {e}",
            metadata={"kubeconfig": kubeconfig_path},
        ) from e
    logger.info("Using kubeconfig", extra={"kubeconfig": kubeconfig_path})
    return api_client


def _fill_type_meta(items: List[Dict[str, Any]], api_version: Optional[str], list_kind: Optional[str]) -> None:
    """List items omit apiVersion/kind on the wire; restore them from the list"""
    kind = None
    if list_kind and list_kind.endswith("List"):
        kind = list_kind[: -len("List")]
    for item in items:
        if api_version and not item.get("apiVersion"):
            item["apiVersion"] = api_version
        if kind and not item.get("kind"):
            item["kind"] = kind


class KubernetesResourceFetcher:
    """Lists a collection across all namespaces with a plain GET on its REST path"""

    def __init__(self, api_client: client.ApiClient):
        self.api_client = api_client

    def list(self, selector: ResourceSelector, timeout: Optional[float] = None) -> List[ResourceItem]:
        try:
            response = self.api_client.call_api(
                selector.collection_path,
                "GET",
                header_params={"Accept": "application/json"},
                response_type="object",
                auth_settings=["BearerToken"],
                _return_http_data_only=True,
                _preload_content=True,
                _request_timeout=timeout,
            )
        except ApiException as e:
            raise FetchError(
                f"failed to list {selector}: {e.status} {e.reason}",
                metadata={"selector": str(selector), "status": e.status},
            ) from e
        except Exception as e:
            raise FetchError(
                f"failed to list {selector}: {type(e).__name__}: {e}",
                metadata={"selector": str(selector)},
            ) from e

        if not isinstance(response, dict):
            raise FetchError(
                f"failed to list {selector}: unexpected response of type {type(response).__name__}",
                metadata={"selector": str(selector)},
            )

        items = response.get("items") or []
        _fill_type_meta(items, response.get("apiVersion"), response.get("kind"))
        return items
