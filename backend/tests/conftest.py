"""
Pytest configuration and fixtures
"""
import sys
import threading
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

# Add backend directory to path for imports
backend_dir = Path(__file__).parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from fastapi.testclient import TestClient

from gvr_exporter.core.config import Settings
from gvr_exporter.core.errors import FetchError
from gvr_exporter.core.models import PolicyModule, ResourceSelector
from gvr_exporter.main import create_app
from gvr_exporter.services.policy_evaluator import prepare
from gvr_exporter.services.scrape_service import ScrapeService

DEPLOYMENT_STUB = """\
{% set printer = input | length %}
{% for d in input %}
{% do print("kube_deployment_replicas{" ~ dedup("namespace=" ~ d.metadata.namespace ~ ",name=" ~ d.metadata.name) ~ "}", d.spec.replicas) %}
{% endfor %}
"""


def make_deployment(name: str, namespace: str = "default", replicas: int = 1,
                    labels: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {"name": name, "namespace": namespace, "labels": labels or {}},
        "spec": {"replicas": replicas},
    }


class FakeFetcher:
    """In-memory stand-in for the cluster; optionally fails or stalls"""

    def __init__(self, items: Optional[List[Dict[str, Any]]] = None,
                 error: Optional[Exception] = None, delay: float = 0.0):
        self.items = items or []
        self.error = error
        self.delay = delay
        self.calls: List[Any] = []
        self._lock = threading.Lock()

    def list(self, selector, timeout=None):
        with self._lock:
            self.calls.append((selector, timeout))
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        # fresh copies, as a real list call would return
        return [
            {**item, "metadata": dict(item["metadata"]), "spec": dict(item["spec"])}
            for item in self.items
        ]


@pytest.fixture
def selector() -> ResourceSelector:
    return ResourceSelector(group="apps", version="v1", resource="deployments")


@pytest.fixture
def deployments() -> List[Dict[str, Any]]:
    return [
        make_deployment("api", "prod", replicas=3),
        make_deployment("web", "default", replicas=2),
    ]


@pytest.fixture
def compiled_query():
    return prepare(PolicyModule(source=DEPLOYMENT_STUB))


@pytest.fixture
def fake_fetcher(deployments) -> FakeFetcher:
    return FakeFetcher(items=deployments)


@pytest.fixture
def make_app(compiled_query, selector):
    """Build an app around a given fetcher (and optionally another stub)"""
    def _make(fetcher, query=None, timeout: float = 5.0):
        service = ScrapeService(
            fetcher=fetcher,
            query=query or compiled_query,
            selector=selector,
            timeout=timeout,
        )
        return create_app(service, Settings())
    return _make


@pytest.fixture
def client(make_app, fake_fetcher):
    """Test client over the default deployment stub and fake cluster"""
    return TestClient(make_app(fake_fetcher))


@pytest.fixture
def failing_client(make_app):
    fetcher = FakeFetcher(error=FetchError("failed to list apps/v1/deployments: 403 Forbidden"))
    return TestClient(make_app(fetcher))
