"""
REGRAPH - REwriting GRAPHs by rule systems

A graph rewriting library: rules match a subgraph, build a replacement and
redirect references to it, with sharing preserved.

Quick Start:
    from regraph import DenseGraph, GRS, Rule

    grs = GRS([
        Rule({"x": ("Add", ["y", "z"]), "y": ("Zero", [])}, {}, ("x", "z"),
             name="add-zero"),
        Rule({"x": ("Add", ["y", "z"]), "y": ("Succ", ["a"])},
             {"m": ("Succ", ["n"]), "n": ("Add", ["a", "z"])}, ("x", "m"),
             name="add-succ"),
    ])

    data = DenseGraph.from_nodes([
        ("Add", [1, 2]),     # 0: Add(Succ(Zero), Zero)
        ("Succ", [2]),       # 1
        ("Zero", []),        # 2
    ])
    grs.normalize(data, strategy="outermost")
    data.term()              # => ("Succ", "Zero")

Canonical form:
    {var: (value, [arg vars])}    - one entry per pattern node
    a var that is a key           - internal, matched recursively
    a var that is only an arg     - leaf, bound to whatever node is there
    (src, dst)                    - redirection: src := dst after rewriting

Strategies:
    once        - reduce at the root once (default)
    outermost   - leftmost-outermost reducible node, until normal form
    innermost   - leftmost-innermost reducible node, until normal form
"""

__version__ = "0.1.0"

# Graph storage
from .graph import (
    Value,
    NodeId,
    PatternVar,
    DataGraph,
    DenseGraph,
    DictGraph,
    Pattern,
    DictPattern,
    # Mapping classes
    Mapping,
    NoMatch,
)

# Matching and instantiation
from .rewriter import (
    match,
    rewrite,
    MatchType,
)

# Strategies
from .strategy import (
    Strategy,
    Once,
    Serial,
    Outermost,
    Innermost,
    STRATEGIES,
    get_strategy,
    reachable,
)

# Rules and rule sets
from .engine import (
    Rule,
    RuleMetadata,
    GRS,
    ReductionStep,
    ReductionTrace,
    ON_STUCK,
)

# Public API
__all__ = [
    # Version
    "__version__",
    # Types
    "Value",
    "NodeId",
    "PatternVar",
    "MatchType",
    # Graph storage
    "DataGraph",
    "DenseGraph",
    "DictGraph",
    "Pattern",
    "DictPattern",
    # Mapping
    "Mapping",
    "NoMatch",
    # Core
    "match",
    "rewrite",
    # Strategies
    "Strategy",
    "Once",
    "Serial",
    "Outermost",
    "Innermost",
    "STRATEGIES",
    "get_strategy",
    "reachable",
    # Engine
    "Rule",
    "RuleMetadata",
    "GRS",
    "ReductionStep",
    "ReductionTrace",
    "ON_STUCK",
]
