"""Tests for data-graph and pattern storage."""

import pytest
from regraph import DenseGraph, DictGraph, DictPattern


class TestDataGraphAccessors:
    """Tests for value/args/root on both stores."""

    def test_value_and_args(self, make_graph):
        """Nodes expose their value and argument ids."""
        g = make_graph([("Add", [1, 1]), ("Zero", [])])
        assert g.value(0) == "Add"
        assert g.args(0) == (1, 1)
        assert g.value(1) == "Zero"
        assert g.args(1) == ()

    def test_root_is_first_node(self, make_graph):
        """The first node is the root."""
        g = make_graph([("Start", []), ("Zero", [])])
        assert g.root() == 0

    def test_forward_references(self, make_graph):
        """Arguments may refer to nodes defined later."""
        g = make_graph([("Succ", [2]), ("Zero", []), ("Succ", [1])])
        assert g.term() == ("Succ", ("Succ", "Zero"))

    def test_unknown_id_raises(self, make_graph):
        """Looking up a node that does not exist is a KeyError."""
        g = make_graph([("Zero", [])])
        with pytest.raises(KeyError):
            g.value(7)
        with pytest.raises(KeyError):
            g.args(7)

    def test_contains_and_len(self, make_graph):
        """'in' and len() report allocated nodes."""
        g = make_graph([("Add", [1, 1]), ("Zero", [])])
        assert 0 in g
        assert 1 in g
        assert 2 not in g
        assert len(g) == 2

    def test_empty_graph_has_no_root(self):
        """An empty graph has no root."""
        with pytest.raises(KeyError):
            DenseGraph().root()
        with pytest.raises(KeyError):
            DictGraph().root()


class TestAllocation:
    """Tests for alloc and append_arg."""

    def test_alloc_returns_fresh_id(self, make_graph):
        """alloc() creates a node with no arguments."""
        g = make_graph([("Zero", [])])
        id = g.alloc("Succ")
        assert id == 1
        assert g.value(id) == "Succ"
        assert g.args(id) == ()

    def test_alloc_keeps_earlier_ids_valid(self, make_graph):
        """Ids issued before an allocation stay valid after it."""
        g = make_graph([("Zero", [])])
        ids = [g.alloc("Succ") for _ in range(50)]
        assert g.value(0) == "Zero"
        assert all(g.value(id) == "Succ" for id in ids)
        assert len(set(ids)) == 50

    def test_append_arg_order(self, make_graph):
        """Arguments appear in the order they were appended."""
        g = make_graph([("Zero", []), ("One", [])])
        id = g.alloc("Pair")
        g.append_arg(id, 1)
        g.append_arg(id, 0)
        assert g.args(id) == (1, 0)

    def test_append_unknown_arg_raises(self, make_graph):
        """Appending an id that does not exist is a KeyError."""
        g = make_graph([("Zero", [])])
        with pytest.raises(KeyError):
            g.append_arg(0, 99)

    def test_capacity(self):
        """A bounded DenseGraph refuses to grow past its capacity."""
        g = DenseGraph(capacity=2)
        g.alloc("A")
        g.alloc("B")
        with pytest.raises(OverflowError):
            g.alloc("C")

    def test_dict_graph_alloc_skips_taken_keys(self):
        """DictGraph issues ints that are not already used as keys."""
        g = DictGraph({0: ("Zero", []), 1: ("Zero", []), "a": ("Succ", [0])})
        assert g.alloc("New") == 2

    def test_dict_graph_explicit_root(self):
        """DictGraph accepts any key as its root."""
        g = DictGraph({"z": ("Zero", []), "s": ("Succ", ["z"])}, root="s")
        assert g.root() == "s"
        assert g.term() == ("Succ", "Zero")

    def test_dict_graph_bad_root(self):
        """A root that is not a node is rejected."""
        with pytest.raises(ValueError):
            DictGraph({"z": ("Zero", [])}, root="q")


class TestRedirect:
    """Tests for redirection via the forwarding table."""

    def test_redirect_aliases_src_to_dst(self, make_graph):
        """After redirect, src behaves like dst."""
        g = make_graph([("Add", [1, 1]), ("Zero", [])])
        g.redirect(0, 1)
        assert g.value(0) == "Zero"
        assert g.args(0) == ()
        assert g.resolve(0) == 1

    def test_parents_see_redirected_node(self, make_graph):
        """Every existing reference to src observes dst's content."""
        g = make_graph([
            ("Pair", [1, 1]),   # 0
            ("Add", [2, 2]),    # 1
            ("Zero", []),       # 2
        ])
        g.redirect(1, 2)
        assert g.args(0) == (2, 2)
        assert g.term() == ("Pair", "Zero", "Zero")

    def test_future_references_see_redirected_node(self, make_graph):
        """References created after a redirect are forwarded too."""
        g = make_graph([("Add", [1, 1]), ("Zero", [])])
        g.redirect(0, 1)
        id = g.alloc("Succ")
        g.append_arg(id, 0)
        assert g.args(id) == (1,)

    def test_redirect_does_not_swap(self, make_graph):
        """Other nodes referring to dst keep seeing dst's content."""
        g = make_graph([
            ("Pair", [1, 2]),   # 0
            ("Add", [2, 2]),    # 1
            ("Zero", []),       # 2
        ])
        g.redirect(1, 2)
        assert g.value(2) == "Zero"
        assert g.term() == ("Pair", "Zero", "Zero")

    def test_root_follows_redirect(self, make_graph):
        """Redirecting the root moves the graph's entry point."""
        g = make_graph([("Add", [1, 1]), ("Zero", [])])
        g.redirect(0, 1)
        assert g.root() == 1

    def test_chained_redirects(self, make_graph):
        """Forwarding chains resolve to their last node."""
        g = make_graph([("A", []), ("B", []), ("C", [])])
        g.redirect(0, 1)
        g.redirect(1, 2)
        assert g.value(0) == "C"
        assert g.resolve(0) == 2

    def test_redirect_forwarded_src(self, make_graph):
        """Redirecting an alias redirects the node it denotes."""
        g = make_graph([("A", []), ("B", []), ("C", [])])
        g.redirect(0, 1)
        g.redirect(0, 2)
        assert g.value(0) == "C"
        assert g.value(1) == "C"

    def test_self_redirect_is_noop(self, make_graph):
        """Redirecting a node onto itself, even through aliases, changes nothing."""
        g = make_graph([("A", []), ("B", [])])
        g.redirect(0, 1)
        before = g.snapshot()
        g.redirect(1, 0)
        g.redirect(0, 0)
        assert g.snapshot() == before
        assert g.value(1) == "B"

    def test_nodes_excludes_forwarded(self, make_graph):
        """nodes() lists only ids that have not been redirected."""
        g = make_graph([("Add", [1, 1]), ("Zero", [])])
        g.redirect(0, 1)
        assert g.nodes() == [1]
        assert g.forwarded(0)
        assert not g.forwarded(1)


class TestGc:
    """Tests for the gc() hook."""

    def test_gc_preserves_observations(self, make_graph):
        """gc() does not change any value or argument lookup."""
        g = make_graph([("Pair", [1, 2]), ("A", []), ("B", []), ("C", [])])
        g.redirect(1, 2)
        g.redirect(2, 3)
        before = [(id, g.value(id), g.args(id)) for id in range(4)]
        g.gc()
        after = [(id, g.value(id), g.args(id)) for id in range(4)]
        assert before == after
        assert len(g) == 4

    def test_gc_compacts_stored_args(self, make_graph):
        """After gc() stored arguments point straight at chain ends."""
        g = make_graph([("Pair", [1, 1]), ("A", []), ("B", [])])
        g.redirect(1, 2)
        g.gc()
        slots, _ = g.snapshot()
        assert slots[0] == (0, "Pair", (2, 2))


class TestSnapshotAndTerm:
    """Tests for introspection helpers."""

    def test_snapshot_detects_mutation(self, make_graph):
        """snapshot() changes whenever the store changes."""
        g = make_graph([("Zero", [])])
        s0 = g.snapshot()
        assert g.snapshot() == s0
        g.alloc("Succ")
        assert g.snapshot() != s0

    def test_term_cycle(self, make_graph):
        """term() cuts cycles off at max_depth."""
        g = make_graph([("Cons", [1, 0]), ("A", [])])
        t = g.term(max_depth=3)
        assert t == ("Cons", "A", ("Cons", "A", ("Cons", ..., ...)))

    def test_repr(self, make_graph):
        """repr shows nodes and forwarding."""
        g = make_graph([("Add", [1, 1]), ("Zero", [])])
        g.redirect(0, 1)
        text = repr(g)
        assert "0: => 1" in text
        assert "1: Zero()" in text


class TestDictPattern:
    """Tests for the dict-backed pattern store."""

    def test_accessors(self):
        """contains/value/args/root mirror the data graph."""
        p = DictPattern({"x": ("Add", ["y", "z"]), "z": ("Zero", [])})
        assert p.root() == "x"
        assert p.contains("x")
        assert p.contains("z")
        assert not p.contains("y")
        assert p.value("x") == "Add"
        assert p.args("x") == ("y", "z")
        assert p.args("z") == ()

    def test_variables_and_leaves(self):
        """variables() lists every var; leaves() only the unbound ones."""
        p = DictPattern({"x": ("Add", ["y", "z"]), "z": ("Zero", [])})
        assert p.variables() == ["x", "y", "z"]
        assert p.leaves() == ["y"]

    def test_explicit_root(self):
        """A root other than the first entry may be given."""
        p = DictPattern({"z": ("Zero", []), "x": ("Add", ["y", "z"])}, root="x")
        assert p.root() == "x"

    def test_bad_root(self):
        """A root that is not a pattern node is rejected."""
        with pytest.raises(ValueError):
            DictPattern({"x": ("A", [])}, root="y")

    def test_empty_pattern(self):
        """The empty pattern has no root and no nodes."""
        p = DictPattern({})
        assert p.root() is None
        assert len(p) == 0
        assert p.variables() == []

    def test_unknown_var_raises(self):
        """Looking up a leaf or unknown var as a node is a KeyError."""
        p = DictPattern({"x": ("Add", ["y"])})
        with pytest.raises(KeyError):
            p.value("y")

    def test_equality(self):
        """Patterns with the same nodes and root are equal."""
        a = DictPattern({"x": ("Add", ["y", "z"])})
        b = DictPattern({"x": ("Add", ("y", "z"))})
        assert a == b
        assert hash(a) == hash(b)

    def test_reachable_vars(self):
        """reachable() walks from the root through internal vars."""
        p = DictPattern({
            "x": ("F", ["a", "y"]),
            "y": ("G", ["b", "x"]),
            "w": ("H", ["c"]),
        })
        assert p.reachable() == ["x", "a", "y", "b"]
        assert p.reachable("w") == ["w", "c"]
        assert DictPattern({}).reachable() == []

    def test_none_as_root(self):
        """None is an ordinary var and may be named as the root."""
        p = DictPattern({"x": ("Zero", []), None: ("Succ", ["x"])}, root=None)
        assert p.root() is None
        assert p.value(p.root()) == "Succ"


class TestNoneKeys:
    """Tests for DictGraph nodes keyed by None."""

    def test_none_as_root(self):
        """A node keyed by None can be named as the root."""
        g = DictGraph({"z": ("Zero", []), None: ("Succ", ["z"])}, root=None)
        assert g.root() is None
        assert g.term() == ("Succ", "Zero")

    def test_default_root_is_first_key(self):
        """Without a root argument the first key is the root, even if None."""
        g = DictGraph({None: ("Succ", ["z"]), "z": ("Zero", [])})
        assert g.root() is None
        assert DictGraph({"z": ("Zero", []), None: ("A", [])}).root() == "z"
