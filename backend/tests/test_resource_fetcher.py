"""
Tests for the Kubernetes resource fetcher
"""
from unittest.mock import Mock

import pytest
from kubernetes.client.rest import ApiException

from gvr_exporter.core.errors import ClientInitError, FetchError
from gvr_exporter.core.models import ResourceSelector
from gvr_exporter.services.resource_fetcher import KubernetesResourceFetcher, build_api_client


@pytest.fixture
def api_client():
    return Mock()


class TestKubernetesResourceFetcher:

    def test_lists_grouped_collection(self, api_client, selector):
        api_client.call_api.return_value = {
            "apiVersion": "apps/v1",
            "kind": "DeploymentList",
            "items": [{"metadata": {"name": "api"}}],
        }
        items = KubernetesResourceFetcher(api_client).list(selector, timeout=3.0)

        args, kwargs = api_client.call_api.call_args
        assert args == ("/apis/apps/v1/deployments", "GET")
        assert kwargs["response_type"] == "object"
        assert kwargs["_request_timeout"] == 3.0
        assert items == [{"apiVersion": "apps/v1", "kind": "Deployment", "metadata": {"name": "api"}}]

    def test_lists_core_collection(self, api_client):
        api_client.call_api.return_value = {"apiVersion": "v1", "kind": "PodList", "items": []}
        selector = ResourceSelector(group="", version="v1", resource="pods")

        assert KubernetesResourceFetcher(api_client).list(selector) == []
        assert api_client.call_api.call_args[0][0] == "/api/v1/pods"

    def test_existing_type_meta_is_kept(self, api_client, selector):
        api_client.call_api.return_value = {
            "apiVersion": "apps/v1",
            "kind": "DeploymentList",
            "items": [{"apiVersion": "apps/v1beta1", "kind": "Custom", "metadata": {}}],
        }
        items = KubernetesResourceFetcher(api_client).list(selector)
        assert items[0]["apiVersion"] == "apps/v1beta1"
        assert items[0]["kind"] == "Custom"

    def test_null_items_is_empty_collection(self, api_client, selector):
        api_client.call_api.return_value = {"kind": "DeploymentList", "items": None}
        assert KubernetesResourceFetcher(api_client).list(selector) == []

    def test_api_exception_is_fetch_error(self, api_client, selector):
        api_client.call_api.side_effect = ApiException(status=403, reason="Forbidden")

        with pytest.raises(FetchError) as exc_info:
            KubernetesResourceFetcher(api_client).list(selector)
        assert "403 Forbidden" in exc_info.value.message
        assert exc_info.value.metadata["selector"] == "apps/v1/deployments"

    def test_transport_error_is_fetch_error(self, api_client, selector):
        api_client.call_api.side_effect = ConnectionError("connection refused")

        with pytest.raises(FetchError) as exc_info:
            KubernetesResourceFetcher(api_client).list(selector)
        assert "connection refused" in exc_info.value.message

    def test_unexpected_payload_is_fetch_error(self, api_client, selector):
        api_client.call_api.return_value = "not a list"
        with pytest.raises(FetchError):
            KubernetesResourceFetcher(api_client).list(selector)


class TestBuildApiClient:

    def test_unusable_kubeconfig_is_client_init_error(self, tmp_path, monkeypatch):
        monkeypatch.delenv("KUBERNETES_SERVICE_HOST", raising=False)
        kubeconfig = tmp_path / "config"
        kubeconfig.write_text("apiVersion: v1\nkind: Config\nclusters: []\ncontexts: []\n")

        with pytest.raises(ClientInitError):
            build_api_client(str(kubeconfig))

    def test_missing_kubeconfig_out_of_cluster(self, tmp_path, monkeypatch):
        monkeypatch.delenv("KUBERNETES_SERVICE_HOST", raising=False)
        with pytest.raises(ClientInitError):
            build_api_client(str(tmp_path / "absent"))

    def test_valid_kubeconfig(self, tmp_path, monkeypatch):
        monkeypatch.delenv("KUBERNETES_SERVICE_HOST", raising=False)
        kubeconfig = tmp_path / "config"
        kubeconfig.write_text(
            "apiVersion: v1\n"
            "kind: Config\n"
            "clusters:\n"
            "- name: test\n"
            "  cluster:\n"
            "    server: https://127.0.0.1:6443\n"
            "contexts:\n"
            "- name: test\n"
            "  context:\n"
            "    cluster: test\n"
            "    user: test\n"
            "current-context: test\n"
            "users:\n"
            "- name: test\n"
            "  user:\n"
            "    token: abc\n"
        )
        api_client = build_api_client(str(kubeconfig))
        assert api_client.configuration.host == "https://127.0.0.1:6443"
