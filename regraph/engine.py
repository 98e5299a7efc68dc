"""
Rules, rule sets and the reduction driver for REGRAPH.

REGRAPH - REwriting GRAPHs by rule systems

A rule couples a redex pattern, a contractum pattern and a redirection
pair. Rules are written in canonical form, one dict entry per pattern node:

    add_zero = Rule(
        {"x": ("Add", ["y", "z"]), "z": ("Zero", [])},   # redex
        {},                                              # contractum
        ("x", "z"),                                      # x := z
        name="add-zero",
    )

A GRS is an ordered collection of rules. ``GRS.reduce`` applies the first
rule that matches at a node; ``GRS.normalize`` drives reduction with a
strategy until the strategy finds nothing left to do:

    grs = GRS([add_zero, add_succ])
    grs.normalize(data, strategy="outermost")

Tracing:
    Use GRS.normalize(data, trace=True) to see which rules were applied.
"""

import logging
from collections import Counter
from typing import Dict, List, Optional, Tuple, Union

from .graph import DataGraph, DictPattern, Mapping, NoMatch, NodeId, Pattern, PatternVar
from .rewriter import MatchType, match, rewrite
from .strategy import Strategy, get_strategy

log = logging.getLogger(__name__)

PatternSpec = Union[Pattern, Dict]

# What the driver does when a strategy proposes a node no rule reduces
ON_STUCK = ["abort", "skip", "stop"]


def _as_pattern(spec: PatternSpec) -> Pattern:
    if isinstance(spec, Pattern):
        return spec
    return DictPattern(spec)


class RuleMetadata:
    """Metadata for a rule: name, description and priority."""

    def __init__(self, name: Optional[str] = None, description: Optional[str] = None,
                 priority: int = 0):
        self.name = name
        self.description = description
        self.priority = priority  # Higher priority is tried first (default: 0)

    def __repr__(self) -> str:
        if not self.name:
            return "<anonymous>"
        if self.priority != 0:
            base = f"@{self.name}[{self.priority}]"
        else:
            base = f"@{self.name}"
        if self.description:
            base += f" \"{self.description}\""
        return base


class Rule:
    """
    A rewrite rule in canonical form.

    Args:
        redex: Pattern (or canonical dict) to match; its root is matched
            at the candidate node.
        contractum: Pattern (or canonical dict) to instantiate. May be empty
            for rules that only redirect.
        redirection: (src, dst) vars. After rewriting, the node bound to
            ``src`` is redirected to the node bound to ``dst``. Either var may
            name a redex var or a contractum node; contractum nodes win.
        name, description, priority: Rule metadata.
        strict_arity: Fail the match when argument counts differ instead of
            ignoring surplus arguments.

    Raises:
        ValueError: If the redex is empty, a pattern node cannot be reached
            from its root, a contractum leaf is not bound by the redex, or a
            redirection var is bound by neither pattern.
    """

    def __init__(self, redex: PatternSpec, contractum: PatternSpec,
                 redirection: Tuple[PatternVar, PatternVar],
                 name: Optional[str] = None, description: Optional[str] = None,
                 priority: int = 0, strict_arity: bool = False):
        self.redex = _as_pattern(redex)
        self.contractum = _as_pattern(contractum)
        self.redirection = tuple(redirection)
        self.metadata = RuleMetadata(name=name, description=description, priority=priority)
        self.strict_arity = strict_arity
        self._validate()

    def _validate(self) -> None:
        if len(self.redex) == 0:
            raise ValueError("Redex pattern must not be empty")
        if len(self.redirection) != 2:
            raise ValueError(f"Redirection must be a (src, dst) pair, got {self.redirection!r}")

        reached = self.redex.reachable()
        for label, pattern, found in (("Redex", self.redex, reached),
                                      ("Contractum", self.contractum, self.contractum.reachable())):
            orphans = [var for var in pattern if var not in found]
            if orphans:
                raise ValueError(f"{label} nodes {orphans!r} cannot be reached from "
                                 f"the root {pattern.root()!r}")

        bound = set(reached)
        for var in self.contractum.leaves():
            if var not in bound:
                raise ValueError(f"Contractum variable {var!r} is not bound by the redex")
        for var in self.redirection:
            if var not in bound and not self.contractum.contains(var):
                raise ValueError(f"Redirection variable {var!r} is bound by neither pattern")

        # Lenient arity can leave any of these unbound after a match
        needed = self.contractum.leaves() + [
            var for var in self.redirection if not self.contractum.contains(var)
        ]
        self._needed = list(dict.fromkeys(needed))

    @classmethod
    def from_nodes(cls, redex: Dict, contractum: Dict,
                   redirection: Tuple[PatternVar, PatternVar], **kwargs) -> 'Rule':
        """Build a rule from canonical dicts, rooting each pattern at its first key."""
        return cls(DictPattern(redex), DictPattern(contractum), redirection, **kwargs)

    def matches(self, data: DataGraph, node: Optional[NodeId] = None) -> MatchType:
        """
        Match the redex at ``node`` (default: the graph's root).

        A match that leaves a var unbound which the contractum or the
        redirection needs (a pattern argument past the node's arity) is not
        a match, so ``reduce`` never fails halfway.

        Returns:
            Mapping if matched, NoMatch (falsy) if not.

        Example:
            if mapping := rule.matches(data):
                print(mapping["x"])
        """
        if node is None:
            node = data.root()
        mapping = match(self.redex, self.redex.root(), data, node,
                        strict_arity=self.strict_arity)
        if not mapping:
            return mapping
        missing = [var for var in self._needed if var not in mapping]
        if missing:
            log.debug("%r: %r unbound at %r", self.metadata, missing, node)
            return NoMatch
        return mapping

    def reduce(self, data: DataGraph, node: Optional[NodeId] = None) -> MatchType:
        """
        Match, rewrite and redirect at ``node`` (default: the root).

        The graph is only touched when the redex matches.

        Returns:
            The Mapping of the match if the rule was applied, NoMatch if not.
        """
        mapping = self.matches(data, node)
        if mapping:
            self._apply(data, mapping)
        return mapping

    def _apply(self, data: DataGraph, mapping: Mapping) -> Optional[NodeId]:
        """Rewrite the contractum and redirect; return the contractum root."""
        created: Dict[PatternVar, NodeId] = {}
        result = None
        if len(self.contractum):
            result = rewrite(self.contractum, self.contractum.root(), data, mapping, created)

        src, dst = self.redirection
        src = created[src] if src in created else mapping[src]
        dst = created[dst] if dst in created else mapping[dst]
        data.redirect(src, dst)
        log.debug("applied %r: %r := %r", self.metadata, src, dst)
        return result

    @property
    def name(self) -> Optional[str]:
        return self.metadata.name

    def __repr__(self) -> str:
        src, dst = self.redirection
        return f"Rule({self.metadata!r}: {self.redex!r} -> {self.contractum!r}, {src} := {dst})"


class ReductionStep:
    """A single rule application in a reduction trace."""

    def __init__(self, node: NodeId, rule_index: int, metadata: RuleMetadata,
                 mapping: Mapping, result: Optional[NodeId] = None):
        self.node = node
        self.rule_index = rule_index
        self.metadata = metadata
        self.mapping = mapping
        self.result = result

    @property
    def rule_name(self) -> str:
        return self.metadata.name or f"rule[{self.rule_index}]"

    def __repr__(self) -> str:
        return f"{self.rule_name} at {self.node!r}: {self.mapping.to_dict()}"

    def to_dict(self) -> Dict:
        """Convert step to dictionary."""
        return {
            "node": self.node,
            "rule_index": self.rule_index,
            "rule_name": self.metadata.name,
            "description": self.metadata.description,
            "mapping": self.mapping.to_dict(),
            "result": self.result,
        }


class ReductionTrace:
    """
    A trace of the reductions performed by one ``normalize`` run.

    ``outcome`` is "normal-form" when the strategy ran out of candidates,
    "stuck" when the driver aborted at a node no rule reduces (``stuck_at``)
    and "step-limit" when ``max_steps`` ran out.

    Formatting options:
        - format("verbose"): one line per step plus the outcome (default)
        - format("compact"): single line with the rule chain and outcome
        - format("rules"): just the rule names applied
    """

    def __init__(self):
        self.steps: List[ReductionStep] = []
        self.outcome: Optional[str] = None
        self.stuck_at: Optional[NodeId] = None

    def add_step(self, step: ReductionStep):
        self.steps.append(step)

    def format(self, style: str = "verbose") -> str:
        """
        Format the trace.

        Args:
            style: One of "verbose", "compact", "rules"

        Returns:
            Formatted string representation of the trace.
        """
        if style == "compact":
            return f"--[{', '.join(self.rules_applied())}]--> {self.outcome}"
        elif style == "rules":
            rules = self.rules_applied()
            return " -> ".join(rules) if rules else "(no rules applied)"
        elif style == "verbose":
            return repr(self)
        raise ValueError(f"Unknown trace style: {style}. "
                         f"Valid options: verbose, compact, rules")

    def __repr__(self) -> str:
        lines = []
        for i, step in enumerate(self.steps, 1):
            lines.append(f"  {i}. {step}")
        outcome = f"Outcome: {self.outcome}"
        if self.stuck_at is not None:
            outcome += f" at {self.stuck_at!r}"
        lines.append(outcome)
        return "\n".join(lines)

    def __len__(self) -> int:
        return len(self.steps)

    def __iter__(self):
        return iter(self.steps)

    def __bool__(self) -> bool:
        """True if any reduction was done."""
        return len(self.steps) > 0

    def to_dict(self) -> Dict:
        """The run as plain data: outcome, rule chain and every step."""
        return {
            "outcome": self.outcome,
            "stuck_at": self.stuck_at,
            "rules": self.rules_applied(),
            "steps": [step.to_dict() for step in self.steps],
        }

    def rule_counts(self) -> Dict[str, int]:
        """Applications per rule name, in order of first use."""
        return dict(Counter(self.rules_applied()))

    def rules_applied(self) -> List[str]:
        """Rule names in order of application."""
        return [step.rule_name for step in self.steps]

    def summary(self) -> str:
        """One line: step count, distinct rules, outcome and the busiest rule."""
        if not self.steps:
            return f"No reductions performed ({self.outcome})"
        counts = Counter(self.rules_applied())
        (busiest, times), = counts.most_common(1)
        return (f"{len(self.steps)} steps using {len(counts)} unique rules, "
                f"{self.outcome}. Most used: {busiest} ({times}x)")


class GRS:
    """
    A graph rewriting system: an ordered collection of rules.

    Rules are tried in order and the first one that matches is applied.
    Rules with a higher priority are moved ahead of lower ones; rules of
    equal priority keep the order they were added in.

    Example:
        grs = GRS([add_zero, add_succ])
        grs.reduce(data, 0)                       # one step at node 0
        grs.normalize(data, strategy="innermost") # until normal form
        grs(data)                                 # shorthand for normalize
    """

    def __init__(self, rules: Optional[List[Rule]] = None):
        self._rules: List[Rule] = []
        self._rule_names: Dict[str, int] = {}
        if rules:
            self.load_rules(rules)

    def _sort_by_priority(self) -> None:
        """Stable sort by priority, descending; rebuilds the name index."""
        self._rules.sort(key=lambda rule: -rule.metadata.priority)
        self._rule_names = {}
        for idx, rule in enumerate(self._rules):
            if rule.name:
                self._rule_names[rule.name] = idx

    def load_rules(self, rules: List[Rule]) -> 'GRS':
        """Append rules."""
        self._rules.extend(rules)
        self._sort_by_priority()
        return self

    def add_rule(self, redex: PatternSpec, contractum: PatternSpec,
                 redirection: Tuple[PatternVar, PatternVar],
                 name: Optional[str] = None, description: Optional[str] = None,
                 priority: int = 0, strict_arity: bool = False) -> 'GRS':
        """Build and append a single rule."""
        rule = Rule(redex, contractum, redirection, name=name, description=description,
                    priority=priority, strict_arity=strict_arity)
        return self.load_rules([rule])

    def get_rule(self, name: str) -> Optional[Rule]:
        """Get a rule by name."""
        if name in self._rule_names:
            return self._rules[self._rule_names[name]]
        return None

    @property
    def rules(self) -> List[Rule]:
        """All rules, in the order they are tried."""
        return self._rules.copy()

    def clear(self) -> 'GRS':
        """Remove all rules."""
        self._rules = []
        self._rule_names = {}
        return self

    # ============================================================
    # Matching and reduction
    # ============================================================

    def matches(self, data: DataGraph, node: Optional[NodeId] = None) -> Optional[Rule]:
        """The first rule whose redex matches at ``node``, without rewriting."""
        for rule in self._rules:
            if rule.matches(data, node):
                return rule
        return None

    def rules_matching(self, data: DataGraph,
                       node: Optional[NodeId] = None) -> List[Tuple[Rule, Mapping]]:
        """
        Find every rule whose redex matches at ``node``.

        Useful for debugging why a node reduces the way it does.

        Returns:
            List of (rule, mapping), in the order rules are tried.
        """
        found = []
        for rule in self._rules:
            mapping = rule.matches(data, node)
            if mapping:
                found.append((rule, mapping))
        return found

    def _reduce_at(self, data: DataGraph,
                   node: Optional[NodeId]) -> Optional[ReductionStep]:
        if node is None:
            node = data.root()
        for idx, rule in enumerate(self._rules):
            mapping = rule.matches(data, node)
            if mapping:
                result = rule._apply(data, mapping)
                return ReductionStep(node, idx, rule.metadata, mapping, result)
        return None

    def reduce(self, data: DataGraph, node: Optional[NodeId] = None) -> Optional[Rule]:
        """
        Apply the first rule that matches at ``node`` (default: the root).

        No later rule is tried once one has been applied, and the graph is
        untouched when nothing matches.

        Returns:
            The applied Rule, or None if no rule matched.
        """
        step = self._reduce_at(data, node)
        if step is None:
            return None
        return self._rules[step.rule_index]

    def normalize(
        self,
        data: DataGraph,
        strategy: Union[str, Strategy] = "once",
        max_steps: int = 1000,
        on_stuck: str = "abort",
        trace: bool = False,
    ):
        """
        Reduce ``data`` until the strategy has no more candidates.

        Args:
            data: Data graph, rewritten in place
            strategy: Strategy instance or name (default: "once")
                - "once": reduce at the root, once
                - "outermost": leftmost-outermost reducible node, repeatedly
                - "innermost": leftmost-innermost reducible node, repeatedly
            max_steps: Maximum number of proposed nodes to act on, reduced or
                skipped (default: 1000). The run only counts as cut short
                when the strategy still has a candidate after that
            on_stuck: What to do when no rule reduces a proposed node
                - "abort": stop and report failure (default)
                - "skip": ignore the node and ask the strategy again
                - "stop": treat the node as normal form and report success
            trace: If True, return (ok, trace) tuple

        Returns:
            True if the strategy reported normal form, False if the run was
            aborted or hit ``max_steps``; or (ok, trace) if trace=True
        """
        if on_stuck not in ON_STUCK:
            raise ValueError(f"Unknown on_stuck policy: {on_stuck}. "
                             f"Valid options: {', '.join(ON_STUCK)}")
        if isinstance(strategy, str):
            strategy = get_strategy(strategy, self)

        trace_obj = ReductionTrace()
        ok = False
        acted = 0
        while True:
            node = strategy.next_redex(data)
            if node is None:
                trace_obj.outcome = "normal-form"
                ok = True
                break
            # Only a candidate beyond the limit counts as running out
            if acted >= max_steps:
                log.warning("normalize stopped after max_steps=%d", max_steps)
                trace_obj.outcome = "step-limit"
                break
            acted += 1

            step = self._reduce_at(data, node)
            if step is not None:
                log.debug("reduced %r with %s", node, step.rule_name)
                trace_obj.add_step(step)
                continue

            log.debug("no rule reduces %r (on_stuck=%s)", node, on_stuck)
            if on_stuck == "skip":
                continue
            trace_obj.stuck_at = node
            if on_stuck == "stop":
                trace_obj.outcome = "normal-form"
                ok = True
            else:
                trace_obj.outcome = "stuck"
            break

        if trace:
            return ok, trace_obj
        return ok

    # ============================================================
    # Container protocol
    # ============================================================

    def list_rules(self) -> List[str]:
        """Describe every rule, in the order they are tried."""
        return [repr(rule) for rule in self._rules]

    def __len__(self) -> int:
        return len(self._rules)

    def __repr__(self) -> str:
        return f"GRS({len(self._rules)} rules)"

    def __call__(self, data: DataGraph, **kwargs):
        """Make the GRS callable: grs(data) is shorthand for grs.normalize(data)."""
        return self.normalize(data, **kwargs)

    def __iter__(self):
        return iter(self._rules)

    def __contains__(self, name: str) -> bool:
        """Check if a named rule exists: 'add-zero' in grs."""
        return name in self._rule_names

    def __getitem__(self, name: str) -> Rule:
        """Get rule by name: grs['add-zero']."""
        if name not in self._rule_names:
            raise KeyError(f"No rule named '{name}'")
        return self._rules[self._rule_names[name]]

    @classmethod
    def from_rules(cls, rules: List[Rule]) -> 'GRS':
        """Create a GRS from a list of rules."""
        return cls(rules)

    def copy(self) -> 'GRS':
        """Create a copy of this GRS; rules are shared, they are immutable."""
        return GRS(self._rules)

    def __or__(self, other: 'GRS') -> 'GRS':
        """Union of two rule sets: grs1 | grs2 (grs1's rules first)."""
        return self.copy().load_rules(other.rules)
