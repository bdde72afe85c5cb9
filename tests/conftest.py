from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from kubernetes import client

from node_life_support.utils import FixedClock

NOW = datetime(2024, 5, 1, 12, 30, 45, 123456, tzinfo=timezone.utc)


def make_node(name, labels=None, conditions=None):
    return client.V1Node(
        metadata=client.V1ObjectMeta(name=name, labels=labels),
        status=client.V1NodeStatus(conditions=conditions),
    )


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def core_api():
    api = MagicMock(spec=client.CoreV1Api)
    api.list_node.return_value = client.V1NodeList(items=[])
    return api


@pytest.fixture
def coordination_api():
    return MagicMock(spec=client.CoordinationV1Api)


@pytest.fixture
def three_nodes():
    return [
        make_node("n1", {"disktype": "ssd"}),
        make_node("n2", {"foo": "bar"}),
        make_node("n3", {"gpu": "true"}),
    ]
