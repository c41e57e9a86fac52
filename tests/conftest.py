"""
Shared fixtures for the Agent Flow Studio test suite.
"""
import sys
import os
import copy
import pytest

# Ensure project root is on sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

os.environ["ENVIRONMENT"] = "dev"


SAMPLE_DOCUMENT = {
    "id": "overlay-remover",
    "name": "Overlay Remover",
    "description": "Removes blocking overlays",
    "version": "1.0.0",
    "author": "flow-team",
    "tags": ["dom", "cleanup"],
    "configFields": [{"key": "aggressive", "type": "boolean"}],
    "dependencies": [],
    "capabilities": [
        {
            "name": "remove_overlays",
            "description": "Find and remove overlays",
            "parameters": [
                {"name": "selector", "type": "string", "description": "", "required": True},
            ],
            "trigger": {"type": "manual"},
            "isLongRunning": False,
            "actions": [
                {"type": "querySelectorAll", "selector": ".overlay", "saveAs": "overlays"},
                {
                    "type": "forEach",
                    "source": "overlays",
                    "itemAs": "overlay",
                    "do": [{"type": "remove", "target": "{{overlay}}"}],
                },
                {"type": "notify", "title": "Done", "message": "Overlays removed"},
            ],
        },
    ],
}


def make_document(actions, name="cap", **metadata):
    """Single-capability script document around an action list."""
    doc = {"id": "doc-1", "name": "Doc", **metadata}
    doc["capabilities"] = [
        {"name": name, "description": "", "parameters": [], "actions": actions},
    ]
    return doc


@pytest.fixture
def sample_document():
    return copy.deepcopy(SAMPLE_DOCUMENT)


@pytest.fixture
def compiler():
    """Fresh FlowCompiler instance."""
    from agentflow.flow.compiler import FlowCompiler
    return FlowCompiler()


@pytest.fixture
def layout_engine():
    """LayoutEngine with default geometry."""
    from agentflow.config.settings import Settings
    from agentflow.flow.layout import LayoutEngine
    return LayoutEngine(Settings())


@pytest.fixture
def loop_document():
    return make_document([
        {
            "type": "forEach",
            "source": "items",
            "itemAs": "item",
            "do": [
                {"type": "click", "target": "{{item}}"},
                {"type": "wait", "ms": 100},
            ],
        },
    ])
