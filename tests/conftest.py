"""Root pytest configuration for all tests."""

from __future__ import annotations

import pytest

from toolrelay.mcp.types import ToolDescriptor
from tests.utils import FakeTransportFactory

# Configure pytest-asyncio to use auto mode
# This is redundant with pyproject.toml but ensures it's set
pytest_plugins = ("pytest_asyncio",)


@pytest.fixture(scope="session")
def anyio_backend():
    """Set anyio backend to asyncio."""
    return "asyncio"


@pytest.fixture
def sample_tools() -> list[ToolDescriptor]:
    return [
        ToolDescriptor(
            name="search",
            description="Search the web",
            input_schema={"type": "object", "properties": {"query": {"type": "string"}}},
        ),
        ToolDescriptor(
            name="install_server",
            description="Install an MCP server",
            input_schema={
                "type": "object",
                "properties": {"server_id": {"type": "string"}},
            },
        ),
        ToolDescriptor(name="initialize_toolplex", description="Bootstrap"),
    ]


@pytest.fixture
def transport_factory(sample_tools) -> FakeTransportFactory:
    return FakeTransportFactory(sample_tools)
