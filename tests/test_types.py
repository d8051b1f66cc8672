"""Tests for shared helpers."""

import pytest

from agentline.types import safe_agent_name


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("worker-1_a", "worker-1_a"),
        ("Team Lead", "Team%20Lead"),
        ("../etc", "%2E%2E%2Fetc"),
        ("50%", "50%25"),
        ("zoë", "zo%C3%AB"),
    ],
)
def test_safe_agent_name(name, expected):
    assert safe_agent_name(name) == expected


def test_distinct_names_never_collide():
    names = ["Alice", "alice", "a.b", "a_b", "a%2Eb", "a b"]
    assert len({safe_agent_name(n) for n in names}) == len(names)
