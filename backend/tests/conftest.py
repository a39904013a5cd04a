"""
Pytest fixtures shared by the kie_media tests.

Provides:
- an isolated data directory (set before kie_media is imported)
- a small in-memory catalog and schema cache
- a KieClient factory wired to httpx.MockTransport
"""

import os
import tempfile

os.environ.setdefault("APP_DATA_DIR", tempfile.mkdtemp(prefix="kie-media-tests-"))
os.environ.pop("BACKEND_TOKEN", None)
os.environ.pop("KIE_AI_API_KEY", None)

import httpx
import pytest

from helpers import FAST_POLL_POLICY, make_definition
from kie_media.services.catalog import ModelCatalog
from kie_media.services.kie_client import KieClient
from kie_media.services.schema_compiler import SchemaCache


@pytest.fixture
def scenario_definition():
    """One required text field (max 10) and an optional enum with a default."""
    return make_definition(
        "test/scenario",
        {
            "text": {"type": "string", "max": 10, "required": True},
            "choice": {"type": "enum", "values": ["a", "b"], "default": "a"},
        },
    )


@pytest.fixture
def catalog(scenario_definition):
    return ModelCatalog(
        {
            scenario_definition.id: scenario_definition,
            "test/media": make_definition(
                "test/media",
                {
                    "prompt": {"type": "string", "required": True},
                    "image_urls": {"type": "array", "items": "url", "max": 2},
                    "strength": {"type": "number", "min": 0, "max": 1},
                    "seed": {"type": "number"},
                },
                type="video",
            ),
        }
    )


@pytest.fixture
def schemas(catalog):
    return SchemaCache(catalog, unknown_fields="allow")


@pytest.fixture
def make_client(schemas):
    """Build a KieClient whose HTTP traffic is served by ``handler``."""

    def _make(handler, **kwargs) -> KieClient:
        kwargs.setdefault("poll_policy", FAST_POLL_POLICY)
        kwargs.setdefault("retry_delay", 0)
        return KieClient(
            api_key="test-key",
            base_url="https://kie.test",
            schemas=schemas,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            **kwargs,
        )

    return _make
