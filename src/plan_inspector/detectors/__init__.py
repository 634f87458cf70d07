"""Query anti-pattern detectors for plan inspector.

This module contains one detector per rule. Every detector reads the
ingested QueryModel only, so any subset can be run by the rule engine.
"""

from plan_inspector.detectors.correlated_subquery import CorrelatedSubqueryDetector
from plan_inspector.detectors.cross_join import CrossJoinDetector
from plan_inspector.detectors.deep_nesting import DeepNestingDetector
from plan_inspector.detectors.excessive_window_functions import ExcessiveWindowFunctionsDetector
from plan_inspector.detectors.materialize_order_by import MaterializeOrderByDetector
from plan_inspector.detectors.nested_distinct import NestedDistinctDetector
from plan_inspector.detectors.non_sargable_predicate import NonSargablePredicateDetector
from plan_inspector.detectors.redundant_aggregation import RedundantAggregationDetector
from plan_inspector.detectors.redundant_source_scan import RedundantSourceScanDetector
from plan_inspector.detectors.select_star import SelectStarDetector
from plan_inspector.detectors.self_join import SelfJoinDetector
from plan_inspector.detectors.unfiltered_full_scan import UnfilteredFullScanDetector
from plan_inspector.detectors.union_fan_out import UnionAllFanOutDetector
from plan_inspector.detectors.unused_cte import UnusedCteDetector

DEFAULT_DETECTORS = [
    "plan_inspector.detectors:UnfilteredFullScanDetector",
    "plan_inspector.detectors:RedundantSourceScanDetector",
    "plan_inspector.detectors:NonSargablePredicateDetector",
    "plan_inspector.detectors:CrossJoinDetector",
    "plan_inspector.detectors:CorrelatedSubqueryDetector",
    "plan_inspector.detectors:ExcessiveWindowFunctionsDetector",
    "plan_inspector.detectors:MaterializeOrderByDetector",
    "plan_inspector.detectors:SelfJoinDetector",
    "plan_inspector.detectors:UnusedCteDetector",
    "plan_inspector.detectors:UnionAllFanOutDetector",
    "plan_inspector.detectors:RedundantAggregationDetector",
    "plan_inspector.detectors:SelectStarDetector",
    "plan_inspector.detectors:NestedDistinctDetector",
    "plan_inspector.detectors:DeepNestingDetector",
]


def default_detectors() -> list:
    """Instantiate every built-in detector, in registration order."""
    return [
        UnfilteredFullScanDetector(),
        RedundantSourceScanDetector(),
        NonSargablePredicateDetector(),
        CrossJoinDetector(),
        CorrelatedSubqueryDetector(),
        ExcessiveWindowFunctionsDetector(),
        MaterializeOrderByDetector(),
        SelfJoinDetector(),
        UnusedCteDetector(),
        UnionAllFanOutDetector(),
        RedundantAggregationDetector(),
        SelectStarDetector(),
        NestedDistinctDetector(),
        DeepNestingDetector(),
    ]


__all__ = [
    "CorrelatedSubqueryDetector",
    "CrossJoinDetector",
    "DeepNestingDetector",
    "ExcessiveWindowFunctionsDetector",
    "MaterializeOrderByDetector",
    "NestedDistinctDetector",
    "NonSargablePredicateDetector",
    "RedundantAggregationDetector",
    "RedundantSourceScanDetector",
    "SelectStarDetector",
    "SelfJoinDetector",
    "UnfilteredFullScanDetector",
    "UnionAllFanOutDetector",
    "UnusedCteDetector",
    "DEFAULT_DETECTORS",
    "default_detectors",
]
