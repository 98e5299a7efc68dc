"""
Core matching and rewriting for REGRAPH.

REGRAPH - REwriting GRAPHs by rule systems

This module provides structural matching of a pattern against a data graph,
and instantiation of a pattern into a data graph from a completed Mapping.
Both are written against the DataGraph and Pattern interfaces only, so they
work with any concrete store.
"""

import logging
from typing import Dict, List, Optional, Tuple, Union

from .graph import (
    DataGraph, Pattern, Mapping, NoMatch, _NoMatch, NodeId, PatternVar,
)

log = logging.getLogger(__name__)

MatchType = Union[Mapping, _NoMatch]


# ============================================================
# Pattern Matching
# ============================================================

def match(
    pattern: Pattern,
    var: PatternVar,
    data: DataGraph,
    node: NodeId,
    strict_arity: bool = False,
) -> MatchType:
    """
    Match the pattern node ``var`` against the data node ``node``.

    Values are compared first; on equality ``var`` is bound to ``node`` and
    the pattern's arguments are zipped with the node's arguments, left to
    right. Internal vars are matched in turn at the paired node, depth
    first; leaf vars are bound directly. There is no backtracking: the first
    mismatch fails the whole match.

    A var met a second time must be met at the node it is already bound
    to, so repeated vars denote shared structure and cyclic patterns
    terminate.

    Args:
        pattern: The pattern to match
        var: Pattern node to start from (usually ``pattern.root()``)
        data: The data graph
        node: Data node to match against
        strict_arity: If True, a pattern node and a data node with different
            argument counts do not match. By default the zip stops at the
            shorter side and surplus arguments are ignored.

    Returns:
        Mapping on success, NoMatch on failure. A failed match never
        returns partial bindings and never touches the graph.
    """
    mapping = Mapping()
    stack: List[Tuple[PatternVar, NodeId]] = [(var, data.resolve(node))]

    while stack:
        var, node = stack.pop()

        if var in mapping:
            if mapping[var] != node:
                log.debug("fail: %r already bound to %r, not %r", var, mapping[var], node)
                return NoMatch
            continue

        if not pattern.contains(var):
            log.debug("bind: %r -> %r", var, node)
            mapping.bind(var, node)
            continue

        expected = pattern.value(var)
        actual = data.value(node)
        if expected != actual:
            log.debug("fail: %r != %r", expected, actual)
            return NoMatch

        pattern_args = pattern.args(var)
        data_args = data.args(node)
        if strict_arity and len(pattern_args) != len(data_args):
            log.debug("fail: arity %d != %d at %r", len(pattern_args), len(data_args), node)
            return NoMatch

        log.debug("bind: %r -> %r", var, node)
        mapping.bind(var, node)
        # Reversed so the leftmost pair is popped first
        stack.extend(reversed(list(zip(pattern_args, data_args))))

    return mapping


# ============================================================
# Instantiation
# ============================================================

def rewrite(
    pattern: Pattern,
    var: PatternVar,
    data: DataGraph,
    mapping: Mapping,
    created: Optional[Dict[PatternVar, NodeId]] = None,
) -> NodeId:
    """
    Instantiate the pattern node ``var`` into the data graph.

    A fresh node is allocated for every internal var reachable from ``var``
    (depth first, left to right), then each fresh node gets its arguments
    appended in pattern order: internal vars point at their fresh node,
    leaf vars at the node the mapping binds them to. Each var is allocated
    once, so shared and cyclic contracta stay shared and cyclic. Existing
    nodes are never modified.

    Args:
        pattern: The contractum
        var: Pattern node to instantiate (usually ``pattern.root()``)
        data: The data graph to allocate into
        mapping: Bindings from a successful match of the redex
        created: Optional dict that receives ``var -> fresh id`` for every
            allocated node. Vars already present are reused, not allocated.

    Returns:
        The id of the node allocated for ``var``

    Raises:
        KeyError: If a leaf var is not bound by the mapping. Checked before
            anything is allocated.
    """
    if created is None:
        created = {}

    order: List[PatternVar] = []
    seen = set(created)
    stack = [var]
    while stack:
        v = stack.pop()
        if v in seen:
            continue
        seen.add(v)
        if not pattern.contains(v):
            if v not in mapping:
                raise KeyError(f"Pattern variable {v!r} is not bound")
            continue
        order.append(v)
        stack.extend(reversed(pattern.args(v)))

    for v in order:
        created[v] = data.alloc(pattern.value(v))

    for v in order:
        for arg in pattern.args(v):
            if pattern.contains(arg):
                data.append_arg(created[v], created[arg])
            else:
                data.append_arg(created[v], mapping[arg])

    return created[var]
