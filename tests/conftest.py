import asyncio
from typing import Any, Dict, List

import pytest

from flow_execution.domain.models import (
    FieldDefinition,
    FieldMapping,
    FlowDefinition,
    Group,
    NodeMapping,
)
from flow_execution.processor.interface import StepProcessor


class FakeStepProcessor(StepProcessor):
    """Replays canned responses and records every request it receives."""

    def __init__(self, responses: List[Any] = None):
        self.responses = list(responses or [])
        self.requests: List[Dict[str, Any]] = []

    def queue(self, *responses):
        self.responses.extend(responses)

    async def process(self, request):
        self.requests.append(request)
        if not self.responses:
            raise AssertionError("FakeStepProcessor ran out of responses")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class BlockingStepProcessor(StepProcessor):
    """Holds every call until release() so tests can act mid-request."""

    def __init__(self, response):
        self.response = response
        self.started = asyncio.Event()
        self._release = asyncio.Event()
        self.requests = []

    def release(self):
        self._release.set()

    async def process(self, request):
        self.requests.append(request)
        self.started.set()
        await self._release.wait()
        return self.response


def text_field(group_id, key, required=False, default=None, field_type="text", **kwargs):
    return FieldDefinition(
        id=f"fld_{key}",
        group_id=group_id,
        name=key.title(),
        field_key=key,
        field_type=field_type,
        is_required=required,
        default_value=default,
        **kwargs,
    )


@pytest.fixture
def processor():
    return FakeStepProcessor()


@pytest.fixture
def single_group_flow():
    return FlowDefinition(
        button_id="btn_single",
        name="single",
        groups=[Group(id="A", name="Only", sort_order=1)],
        fields=[
            text_field("A", "name", required=True),
            text_field("A", "city", default="Toronto"),
            text_field("A", "agree", field_type="checkbox"),
        ],
        node_mappings=[NodeMapping(node_id="node_A", group_id="A")],
    )


@pytest.fixture
def linear_flow():
    """A -> B -> C, with B pre-filled from context."""
    return FlowDefinition(
        button_id="btn_linear",
        name="linear",
        groups=[
            Group(id="A", name="First", sort_order=1),
            Group(id="B", name="Second", sort_order=2),
            Group(id="C", name="Third", sort_order=3),
        ],
        fields=[
            text_field("A", "a1", required=True),
            text_field("B", "b1"),
            text_field("B", "b2", default="{{x}}-suffix"),
            text_field("C", "c1"),
        ],
        node_mappings=[
            NodeMapping(node_id="node_A", group_id="A"),
            NodeMapping(
                node_id="node_B",
                group_id="B",
                header_content="Hello {{customer.name}}",
                field_mappings={"b1": FieldMapping(variable_path="customer.name")},
            ),
            NodeMapping(node_id="node_C", group_id="C"),
        ],
    )


@pytest.fixture
def merged_flow():
    """A and B share a step (B.display_with_previous), C stands alone."""
    return FlowDefinition(
        button_id="btn_merged",
        name="merged",
        groups=[
            Group(id="A", name="A", sort_order=1),
            Group(id="B", name="B", sort_order=2),
            Group(id="C", name="C", sort_order=3),
        ],
        fields=[text_field("A", "a"), text_field("B", "b"), text_field("C", "c")],
        node_mappings=[
            NodeMapping(node_id="node_A", group_id="A"),
            NodeMapping(node_id="node_B", group_id="B", display_with_previous=True),
            NodeMapping(node_id="node_C", group_id="C"),
        ],
    )


@pytest.fixture
def array_flow():
    return FlowDefinition(
        button_id="btn_array",
        name="array",
        groups=[
            Group(
                id="G",
                name="Items",
                sort_order=1,
                is_array_group=True,
                array_min_rows=1,
                array_max_rows=3,
                array_field_name="items",
            ),
        ],
        fields=[
            text_field("G", "sku", required=True),
            text_field("G", "qty", default="1", field_type="number"),
            text_field("G", "fragile", field_type="checkbox"),
            text_field("G", "contact", field_type="email"),
        ],
        node_mappings=[NodeMapping(node_id="node_G", group_id="G")],
    )
