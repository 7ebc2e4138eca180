"""Shared fixtures for schemapipe tests"""

import json
import logging
import sys
from pathlib import Path

import pytest

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from schemapipe.config.project import RegistryConfig
from schemapipe.core.fetcher import HttpResponse, RemoteSchemaCache
from schemapipe.core.registry import SchemaRegistry


class FakeHttp:
    """Stands in for the network: serves documents from a dict and records calls"""

    def __init__(self, documents: dict | None = None, statuses: dict | None = None,
                 raw: dict | None = None, chunk_size: int = 7):
        self.documents = documents or {}
        self.statuses = statuses or {}
        self.raw = raw or {}
        self.chunk_size = chunk_size
        self.calls: list[str] = []
        self.closed: list[str] = []
        self.drained: list[str] = []

    async def __call__(self, uri: str) -> HttpResponse:
        self.calls.append(uri)
        if uri in self.raw:
            body = self.raw[uri]
        elif uri in self.documents:
            body = json.dumps(self.documents[uri]).encode("utf-8")
        else:
            body = b'{"message": "Not Found"}'
        status = self.statuses.get(uri, 200 if uri in self.documents or uri in self.raw else 404)

        async def chunks():
            for start in range(0, len(body), self.chunk_size):
                yield body[start:start + self.chunk_size]
            self.drained.append(uri)

        return HttpResponse(status=status, body=chunks(), close=lambda: self.closed.append(uri))


@pytest.fixture
def fake_http():
    return FakeHttp()


@pytest.fixture
def make_registry():
    """Factory for registries that never touch the network"""

    def _make(documents: dict | None = None, http: FakeHttp | None = None, **config):
        http = http or FakeHttp(documents)
        registry = SchemaRegistry(
            config=RegistryConfig(**config),
            fetcher=RemoteSchemaCache(http_get=http),
        )
        return registry, http

    return _make


@pytest.fixture(autouse=True)
def restore_root_logging():
    """The CLI reconfigures root logging; put it back after each test"""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
