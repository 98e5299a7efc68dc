#!/usr/bin/env python3
"""
REGRAPH Feature Demonstration

Peano addition as a graph rewriting system, reduced with each strategy.
"""

import logging

from regraph import (
    DenseGraph, DictGraph, GRS, Rule, Serial,
)


def section(title: str):
    """Print a section header."""
    print(f"\n{'='*60}")
    print(f" {title}")
    print('='*60)


def peano_grs() -> GRS:
    return GRS([
        Rule({"x": ("Add", ["y", "z"]), "y": ("Zero", [])}, {}, ("x", "z"),
             name="add-zero", description="0 + z = z"),
        Rule({"x": ("Add", ["y", "z"]), "y": ("Succ", ["a"])},
             {"m": ("Succ", ["n"]), "n": ("Add", ["a", "z"])}, ("x", "m"),
             name="add-succ", description="S(a) + z = S(a + z)"),
        Rule({"x": ("Start", [])},
             {"m": ("Add", ["n", "o"]), "n": ("Succ", ["o"]), "o": ("Zero", [])},
             ("x", "m"),
             name="start", description="Start = S(0) + 0"),
    ])


def demo_single_step():
    """Reduce once at the root."""
    section("Single Step")

    grs = peano_grs()
    data = DenseGraph.from_nodes([("Add", [1, 1]), ("Zero", [])])
    print(f"  before: {data.term()}")
    rule = grs.reduce(data)
    print(f"  applied {rule.metadata!r}")
    print(f"  after:  {data.term()}")
    print(data)


def demo_strategies():
    """Normalize Start with each search strategy."""
    section("Strategies")

    grs = peano_grs()
    for strategy in ["outermost", "innermost"]:
        data = DenseGraph.from_nodes([("Start", [])])
        ok, trace = grs.normalize(data, strategy=strategy, trace=True)
        print(f"  {strategy:10} {data.term()}  {trace.format('compact')}")


def demo_sharing():
    """Parents of a redex observe its result; shared nodes stay shared."""
    section("Sharing")

    grs = peano_grs()
    data = DictGraph({
        "pair": ("Pair", ["sum", "sum"]),
        "sum": ("Add", ["one", "zero"]),
        "one": ("Succ", ["zero"]),
        "zero": ("Zero", []),
    })
    grs.normalize(data, strategy="outermost")
    left, right = data.args("pair")
    print(f"  {data.term()}")
    print(f"  both arguments are node {left!r}: {left == right}")


def demo_stuck():
    """What happens when a proposed node does not reduce."""
    section("Stuck Policies")

    grs = peano_grs()
    for on_stuck in ["abort", "skip", "stop"]:
        data = DenseGraph.from_nodes([("Succ", [1]), ("Add", [2, 2]), ("Zero", [])])
        ok, trace = grs.normalize(data, strategy=Serial([0, 1]), on_stuck=on_stuck,
                                  trace=True)
        print(f"  {on_stuck:6} ok={ok!s:5} {data.term()}")
        print(f"         {trace!r}".replace("\n", "\n         "))


def demo_trace():
    """Inspect a full trace."""
    section("Tracing")

    grs = peano_grs()
    data = DenseGraph.from_nodes([
        ("Add", [1, 3]),
        ("Succ", [2]),
        ("Succ", [3]),
        ("Zero", []),
    ])
    ok, trace = grs.normalize(data, strategy="outermost", trace=True)
    print(trace)
    print(f"\n  {trace.summary()}")
    print(f"  result: {data.term()}")


def main():
    logging.basicConfig(level=logging.WARNING)
    print("REGRAPH Feature Demonstration")
    print("=" * 60)

    demo_single_step()
    demo_strategies()
    demo_sharing()
    demo_stuck()
    demo_trace()

    print("\n" + "=" * 60)
    print(" Demo complete!")
    print("=" * 60)


if __name__ == "__main__":
    main()
