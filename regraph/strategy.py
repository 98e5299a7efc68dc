"""
Reduction strategies for REGRAPH.

A strategy decides *where* to reduce next; the rule set decides *what* to do
there. Strategies are stateful objects with a single method:

    strategy.next_redex(data) -> node id, or None when there is nothing left

Available strategies:
    once       - propose the root once
    serial     - propose a fixed sequence of nodes, each once
    outermost  - leftmost-outermost node where some rule matches
    innermost  - leftmost-innermost node where some rule matches
"""

import logging
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from .graph import DataGraph, NodeId

log = logging.getLogger(__name__)


def reachable(data: DataGraph, start: Optional[NodeId] = None,
              order: str = "pre") -> List[NodeId]:
    """
    Nodes reachable from ``start`` (default: the root), left to right.

    Each node is listed once, so cyclic graphs are safe.

    Args:
        data: The data graph
        start: Node to start from
        order: "pre" lists a node before its arguments, "post" after

    Returns:
        Resolved node ids in the requested order
    """
    if order not in ("pre", "post"):
        raise ValueError(f"Unknown traversal order: {order}. Valid options: pre, post")

    start = data.root() if start is None else data.resolve(start)
    result: List[NodeId] = []
    seen = set()
    # (node, expanded) pairs; a node is emitted post-order once expanded
    stack = [(start, False)]
    while stack:
        node, expanded = stack.pop()
        if expanded:
            result.append(node)
            continue
        if node in seen:
            continue
        seen.add(node)
        if order == "pre":
            result.append(node)
        else:
            stack.append((node, True))
        for arg in reversed(data.args(node)):
            if arg not in seen:
                stack.append((arg, False))
    return result


class Strategy(ABC):
    """Supplies the next candidate redex of a data graph."""

    @abstractmethod
    def next_redex(self, data: DataGraph) -> Optional[NodeId]:
        """Return the next node to reduce at, or None in normal form."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class Once(Strategy):
    """Propose the graph's root exactly once."""

    def __init__(self):
        self._done = False

    def next_redex(self, data: DataGraph) -> Optional[NodeId]:
        if self._done:
            return None
        self._done = True
        return data.root()


class Serial(Strategy):
    """
    Propose each of the given nodes once, in order.

    Example:
        grs.normalize(data, strategy=Serial([0, 3, 0]))
    """

    def __init__(self, nodes: Iterable[NodeId]):
        self._pending = list(nodes)
        self._position = 0

    def next_redex(self, data: DataGraph) -> Optional[NodeId]:
        if self._position >= len(self._pending):
            return None
        node = self._pending[self._position]
        self._position += 1
        return node

    def __repr__(self) -> str:
        return f"Serial({self._pending[self._position:]})"


class _Search(Strategy):
    """Walk the reachable graph and propose the first node a rule matches."""

    order = "pre"

    def __init__(self, grs):
        self.grs = grs

    def next_redex(self, data: DataGraph) -> Optional[NodeId]:
        for node in reachable(data, order=self.order):
            if self.grs.matches(data, node) is not None:
                log.debug("%s proposes %r", type(self).__name__, node)
                return node
        return None

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.grs!r})"


class Outermost(_Search):
    """Leftmost-outermost: parents are tried before their arguments."""

    order = "pre"


class Innermost(_Search):
    """Leftmost-innermost: arguments are tried before their parents."""

    order = "post"


STRATEGIES = ["once", "outermost", "innermost"]


def get_strategy(name: str, grs) -> Strategy:
    """
    Build a fresh strategy from its name.

    Args:
        name: One of "once", "outermost", "innermost"
        grs: The rule set; used by the search strategies

    Returns:
        A new Strategy instance
    """
    if name == "once":
        return Once()
    elif name == "outermost":
        return Outermost(grs)
    elif name == "innermost":
        return Innermost(grs)
    raise ValueError(f"Unknown strategy: {name}. "
                     f"Valid options: {', '.join(STRATEGIES)}")
