"""Shared fixtures: every data-graph scenario runs against each store."""

import pytest
from regraph import DenseGraph, DictGraph, GRS, Rule


def _dense(nodes):
    return DenseGraph.from_nodes(nodes)


def _dict(nodes):
    return DictGraph(dict(enumerate(nodes)))


@pytest.fixture(params=[_dense, _dict], ids=["dense", "dict"])
def make_graph(request):
    """Build a data graph from a list of (value, [args]); position is the id."""
    return request.param


@pytest.fixture
def add_zero_rule():
    """x: Add(y, z), z: Zero -> {} with x := z."""
    return Rule(
        {"x": ("Add", ["y", "z"]), "z": ("Zero", [])},
        {},
        ("x", "z"),
        name="add-zero",
    )


@pytest.fixture
def peano():
    """Addition on Peano numerals: 0 + z = z, S(a) + z = S(a + z)."""
    return GRS([
        Rule({"x": ("Add", ["y", "z"]), "y": ("Zero", [])}, {}, ("x", "z"),
             name="add-zero"),
        Rule({"x": ("Add", ["y", "z"]), "y": ("Succ", ["a"])},
             {"m": ("Succ", ["n"]), "n": ("Add", ["a", "z"])}, ("x", "m"),
             name="add-succ"),
        Rule({"x": ("Start", [])},
             {"m": ("Add", ["n", "o"]), "n": ("Succ", ["o"]), "o": ("Zero", [])},
             ("x", "m"),
             name="start"),
    ])
