"""
Graph storage for REGRAPH.

REGRAPH - REwriting GRAPHs by rule systems

This module provides the two node stores the rewriting engine works on:
mutable data graphs (addressed by NodeId) and immutable patterns (addressed
by PatternVar), plus the Mapping that bridges the two spaces.

Both stores are described by abstract base classes, so any representation
that implements the accessors can be matched and rewritten. Two concrete
data graphs are provided: DenseGraph (a list of slots keyed by small ints)
and DictGraph (a hash map keyed by arbitrary ids).
"""

import logging
from abc import ABC, abstractmethod
from typing import (
    Any, Dict, Hashable, Iterable, Iterator, List, NewType, Optional,
    Sequence, Tuple,
)

log = logging.getLogger(__name__)

# Type aliases
Value = Hashable
NodeId = NewType("NodeId", int)
PatternVar = NewType("PatternVar", str)
NodeSpec = Tuple[Value, Sequence]  # (value, [args]) in canonical form

# Marks a root argument that was not given; None is a valid key
_UNSET = object()


# ============================================================
# Data Graphs
# ============================================================

class DataGraph(ABC):
    """
    Abstract mutable store of nodes reachable by NodeId.

    Subclasses supply slot storage through the ``_slot``, ``_new_slot`` and
    ``_keys`` hooks; forwarding (redirection) and garbage collection are
    shared. Every public accessor resolves forwarded ids first, so a node
    that has been redirected behaves exactly like its destination.
    """

    def __init__(self):
        self._forward: Dict[Any, Any] = {}

    # -- storage hooks -------------------------------------------------

    @abstractmethod
    def _slot(self, id) -> list:
        """Return the mutable ``[value, args]`` slot for ``id``."""

    @abstractmethod
    def _new_slot(self, value: Value) -> NodeId:
        """Store a fresh slot and return its id."""

    @abstractmethod
    def _keys(self) -> Iterable:
        """All allocated ids, in allocation order."""

    @abstractmethod
    def _root(self) -> NodeId:
        """The raw (unresolved) root id."""

    # -- capability interface ------------------------------------------

    def resolve(self, id) -> NodeId:
        """Follow the forwarding chain of ``id`` to the node it denotes."""
        self._slot(id)  # unknown ids are a KeyError
        while id in self._forward:
            id = self._forward[id]
        return id

    def value(self, id) -> Value:
        """The payload of the node ``id`` denotes."""
        return self._slot(self.resolve(id))[0]

    def args(self, id) -> Tuple[NodeId, ...]:
        """The resolved argument ids of the node ``id`` denotes."""
        return tuple(self.resolve(arg) for arg in self._slot(self.resolve(id))[1])

    def root(self) -> NodeId:
        """The graph's entry point."""
        return self.resolve(self._root())

    def alloc(self, value: Value) -> NodeId:
        """Create a node with no arguments and return its id."""
        id = self._new_slot(value)
        log.debug("alloc: %r -> %r", value, id)
        return id

    def append_arg(self, id, arg) -> None:
        """Append ``arg`` to the argument list of the node ``id`` denotes."""
        self._slot(arg)
        self._slot(self.resolve(id))[1].append(arg)

    def redirect(self, src, dst) -> None:
        """
        Make every reference to ``src`` observe ``dst``.

        Works on resolved ids, union-find style: whatever ``src`` currently
        denotes is forwarded to whatever ``dst`` currently denotes. A node
        redirected onto itself is left alone, so forwarding chains never
        form a cycle.
        """
        src = self.resolve(src)
        dst = self.resolve(dst)
        if src == dst:
            return
        log.debug("redirect: %r -> %r", src, dst)
        self._forward[src] = dst

    def gc(self) -> None:
        """
        Compact forwarding chains.

        Every forwarded id is pointed straight at the end of its chain and
        stored argument ids are replaced by their resolved form. No node is
        reclaimed and no observable value or argument changes.
        """
        for id in list(self._forward):
            self._forward[id] = self.resolve(id)
        for id in self._keys():
            slot = self._slot(id)
            slot[1] = [self.resolve(arg) for arg in slot[1]]

    # -- introspection ---------------------------------------------------

    def nodes(self) -> List[NodeId]:
        """Ids of nodes that have not been redirected, in allocation order."""
        return [id for id in self._keys() if id not in self._forward]

    def forwarded(self, id) -> bool:
        """True if ``id`` has been redirected to another node."""
        self._slot(id)
        return id in self._forward

    def snapshot(self) -> Tuple:
        """
        Hashable dump of every slot and the forwarding table.

        Two snapshots compare equal exactly when no alloc, append_arg,
        redirect or gc changed the store in between.
        """
        slots = tuple(
            (id, self._slot(id)[0], tuple(self._slot(id)[1])) for id in self._keys()
        )
        forward = tuple(sorted(self._forward.items(), key=repr))
        return slots, forward

    def term(self, id=None, max_depth: int = 64):
        """
        Unfold the subgraph at ``id`` (default: the root) into nested tuples.

        A node without arguments unfolds to its bare value, any other node to
        ``(value, *unfolded_args)``. Shared nodes are unfolded at each use and
        anything deeper than ``max_depth`` (e.g. a cycle) becomes ``...``.

        Example:
            DenseGraph.from_nodes([("Succ", [1]), ("Zero", [])]).term()
            # => ("Succ", "Zero")
        """
        if id is None:
            id = self.root()
        if max_depth <= 0:
            return ...
        args = self.args(id)
        if not args:
            return self.value(id)
        return (self.value(id),) + tuple(self.term(arg, max_depth - 1) for arg in args)

    def __contains__(self, id) -> bool:
        try:
            self._slot(id)
        except (KeyError, TypeError):
            return False
        return True

    def __len__(self) -> int:
        return len(list(self._keys()))

    def __repr__(self) -> str:
        parts = []
        for id in self._keys():
            if id in self._forward:
                parts.append(f"{id}: => {self._forward[id]}")
            else:
                value, args = self._slot(id)
                parts.append(f"{id}: {value}({', '.join(map(str, args))})")
        return f"{type(self).__name__}({{{'; '.join(parts)}}})"


class DenseGraph(DataGraph):
    """
    Data graph stored as a dense list of slots.

    Ids are the slot indices, so they stay valid no matter how many nodes are
    allocated later. The root is the first node. An optional ``capacity``
    bounds the number of slots; allocating past it raises OverflowError.

    Examples:
        g = DenseGraph.from_nodes([("Add", [1, 1]), ("Zero", [])])
        g.value(0)       # => "Add"
        g.args(0)        # => (1, 1)
    """

    def __init__(self, capacity: Optional[int] = None):
        super().__init__()
        self._slots: List[list] = []
        self.capacity = capacity

    @classmethod
    def from_nodes(cls, nodes: Sequence[NodeSpec],
                   capacity: Optional[int] = None) -> 'DenseGraph':
        """
        Build a graph from canonical form.

        Args:
            nodes: Sequence of (value, [args]); a node's position is its id.
                Arguments may refer forward to later positions.
            capacity: Optional maximum number of nodes.

        Returns:
            A new DenseGraph
        """
        graph = cls(capacity=capacity)
        for value, _ in nodes:
            graph._new_slot(value)
        for id, (_, args) in enumerate(nodes):
            for arg in args:
                graph.append_arg(id, arg)
        return graph

    def _slot(self, id) -> list:
        if not isinstance(id, int) or isinstance(id, bool) or not 0 <= id < len(self._slots):
            raise KeyError(f"No node with id {id!r}")
        return self._slots[id]

    def _new_slot(self, value: Value) -> NodeId:
        if self.capacity is not None and len(self._slots) >= self.capacity:
            raise OverflowError(f"Graph store full ({self.capacity} nodes)")
        self._slots.append([value, []])
        return NodeId(len(self._slots) - 1)

    def _keys(self) -> Iterable:
        return range(len(self._slots))

    def _root(self) -> NodeId:
        if not self._slots:
            raise KeyError("Empty graph has no root")
        return NodeId(0)


class DictGraph(DataGraph):
    """
    Data graph stored in a dict keyed by arbitrary hashable ids.

    Nodes given up front may use any keys (labels, ints, tuples); nodes
    created by ``alloc`` get the next unused int. The root is the first key
    unless given explicitly.

    Examples:
        g = DictGraph({"a": ("Add", ["b", "b"]), "b": ("Zero", [])})
        g.root()         # => "a"
    """

    def __init__(self, nodes: Optional[Dict[Hashable, NodeSpec]] = None,
                 root: Hashable = _UNSET):
        super().__init__()
        self._nodes: Dict[Hashable, list] = {}
        self._next = 0
        nodes = nodes or {}
        for key, (value, _) in nodes.items():
            self._nodes[key] = [value, []]
        for key, (_, args) in nodes.items():
            for arg in args:
                self.append_arg(key, arg)
        if root is not _UNSET and root not in self._nodes:
            raise ValueError(f"Root {root!r} is not a node of the graph")
        self._root_key = root

    def _slot(self, id) -> list:
        try:
            return self._nodes[id]
        except KeyError:
            raise KeyError(f"No node with id {id!r}") from None

    def _new_slot(self, value: Value) -> NodeId:
        while self._next in self._nodes:
            self._next += 1
        id = self._next
        self._nodes[id] = [value, []]
        return id

    def _keys(self) -> Iterable:
        return list(self._nodes)

    def _root(self) -> NodeId:
        if self._root_key is not _UNSET:
            return self._root_key
        if not self._nodes:
            raise KeyError("Empty graph has no root")
        return next(iter(self._nodes))


# ============================================================
# Patterns
# ============================================================

class Pattern(ABC):
    """
    Abstract, read-only store of pattern nodes keyed by PatternVar.

    A var is *internal* if it names a pattern node (``contains`` is true)
    and a *leaf* if it only ever appears as an argument.
    """

    @abstractmethod
    def contains(self, var) -> bool:
        """True iff ``var`` names a pattern node."""

    @abstractmethod
    def value(self, var) -> Value:
        """The value a data node must carry to match ``var``."""

    @abstractmethod
    def args(self, var) -> Tuple[PatternVar, ...]:
        """The argument vars of the pattern node ``var``."""

    @abstractmethod
    def root(self) -> Optional[PatternVar]:
        """The pattern's entry var, or None for an empty pattern."""

    @abstractmethod
    def __iter__(self) -> Iterator[PatternVar]:
        """Iterate over internal vars."""

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def variables(self) -> List[PatternVar]:
        """Every var of the pattern, internal or leaf, in first-seen order."""
        seen: Dict[PatternVar, None] = {}
        for var in self:
            seen.setdefault(var)
            for arg in self.args(var):
                seen.setdefault(arg)
        return list(seen)

    def leaves(self) -> List[PatternVar]:
        """Vars that appear only as arguments."""
        return [var for var in self.variables() if not self.contains(var)]

    def reachable(self, var=_UNSET) -> List[PatternVar]:
        """
        Vars reachable from ``var`` (default: the root), depth first.

        These are exactly the vars a match starting at ``var`` can bind.
        Empty for the empty pattern.
        """
        if var is _UNSET:
            if len(self) == 0:
                return []
            var = self.root()
        result: List[PatternVar] = []
        seen = set()
        stack = [var]
        while stack:
            v = stack.pop()
            if v in seen:
                continue
            seen.add(v)
            result.append(v)
            if self.contains(v):
                stack.extend(reversed(self.args(v)))
        return result


class DictPattern(Pattern):
    """
    Pattern stored as a dict ``{var: (value, [args])}``.

    The root is the first var unless given. An empty dict is the empty
    pattern, used as the contractum of rules that only redirect.

    Examples:
        redex = DictPattern({"x": ("Add", ["y", "z"]), "z": ("Zero", [])})
        redex.contains("z")   # => True
        redex.leaves()        # => ["y"]
    """

    def __init__(self, nodes: Optional[Dict[Hashable, NodeSpec]] = None,
                 root: Hashable = _UNSET):
        self._nodes = {var: (value, tuple(args))
                       for var, (value, args) in (nodes or {}).items()}
        if root is _UNSET:
            root = next(iter(self._nodes), None)
        elif root not in self._nodes:
            raise ValueError(f"Root {root!r} is not a node of the pattern")
        self._root = root

    def _node(self, var) -> Tuple[Value, Tuple]:
        try:
            return self._nodes[var]
        except KeyError:
            raise KeyError(f"No pattern node named {var!r}") from None

    def contains(self, var) -> bool:
        return var in self._nodes

    def value(self, var) -> Value:
        return self._node(var)[0]

    def args(self, var) -> Tuple[PatternVar, ...]:
        return self._node(var)[1]

    def root(self) -> Optional[PatternVar]:
        return self._root

    def __iter__(self) -> Iterator[PatternVar]:
        return iter(self._nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    def __eq__(self, other):
        if isinstance(other, DictPattern):
            return self._nodes == other._nodes and self._root == other._root
        return False

    def __hash__(self):
        return hash((tuple(self._nodes.items()), self._root))

    def __repr__(self) -> str:
        parts = [f"{var}: {value}({', '.join(map(str, args))})"
                 for var, (value, args) in self._nodes.items()]
        return f"DictPattern({{{'; '.join(parts)}}})"


# ============================================================
# Mapping Class - dict-like interface for match results
# ============================================================

class Mapping:
    """
    Binding of pattern vars to data-graph node ids.

    Produced by a successful match and consumed by the rewriter:

        if mapping := rule.matches(data):
            print(mapping["x"], mapping["y"])

    Mapping objects are truthy, even when empty. Failed matches return
    NoMatch, which is falsy.

    Examples:
        mapping = Mapping([("x", 0), ("y", 1)])
        mapping["x"]      # => 0
        mapping.get("z")  # => None
        "y" in mapping    # => True
        dict(mapping)     # => {"x": 0, "y": 1}
    """

    __slots__ = ('_dict',)

    def __init__(self, pairs: Iterable[Tuple[PatternVar, NodeId]] = ()):
        self._dict: Dict[PatternVar, NodeId] = dict(pairs)

    def bind(self, var: PatternVar, id: NodeId) -> bool:
        """
        Bind ``var`` to ``id``.

        Returns False, leaving the mapping unchanged, if ``var`` is already
        bound to a different id.
        """
        bound = self._dict.setdefault(var, id)
        return bound == id

    def __bool__(self) -> bool:
        return True

    def __getitem__(self, var: PatternVar) -> NodeId:
        try:
            return self._dict[var]
        except KeyError:
            raise KeyError(f"Pattern variable {var!r} is not bound") from None

    def get(self, var: PatternVar, default=None):
        """Get a bound id with optional default."""
        return self._dict.get(var, default)

    def __contains__(self, var) -> bool:
        return var in self._dict

    def keys(self):
        return self._dict.keys()

    def values(self):
        return self._dict.values()

    def items(self):
        return self._dict.items()

    def __iter__(self):
        return iter(self._dict)

    def __len__(self) -> int:
        return len(self._dict)

    def __repr__(self) -> str:
        return f"Mapping({self._dict})"

    def __eq__(self, other):
        if isinstance(other, Mapping):
            return self._dict == other._dict
        if isinstance(other, dict):
            return self._dict == other
        return False

    def to_dict(self) -> Dict[PatternVar, NodeId]:
        """Convert to a plain dictionary."""
        return self._dict.copy()


class _NoMatch:
    """
    The result of a failed match: falsy, with no bindings.

    It answers the read side of the Mapping interface as an empty mapping,
    so a match result can be tested with ``if`` and queried without first
    checking which of the two it is. There is one instance, ``NoMatch``;
    copying or pickling it gives that instance back.
    """

    __slots__ = ()
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = object.__new__(cls)
        return cls._instance

    def __reduce__(self):
        return "NoMatch"

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NoMatch"

    def __getitem__(self, var):
        raise KeyError(f"Pattern variable {var!r} is not bound: the match failed")

    def get(self, var, default=None):
        return default

    def __contains__(self, var) -> bool:
        return False

    def __len__(self) -> int:
        return 0

    def __iter__(self):
        return iter(())

    def keys(self):
        return ()

    def values(self):
        return ()

    def items(self):
        return ()

    def to_dict(self) -> Dict[PatternVar, NodeId]:
        return {}


NoMatch = _NoMatch()
