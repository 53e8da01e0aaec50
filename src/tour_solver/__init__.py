"""High-level entrypoints for the tour solver library."""

from .branch_and_bound import branch_and_bound_tsp
from .branch_and_cut import BranchAndCutSearch, SearchNode, branch_and_cut_tsp
from .cuts import min_cost_cut
from .data import (
    Constraint,
    ConstraintSystem,
    Cut,
    DenseConstraint,
    Infeasible,
    Solution,
    Solved,
    SolverOptions,
    SparseConstraint,
    Unbounded,
    dense_constraints,
)
from .exceptions import (
    InvalidProblemError,
    NumericalInstabilityError,
    SolverConfigurationError,
    SolverInvariantError,
    TourSolverError,
)
from .flow import Flow, max_flow
from .gomory_hu import GomoryHuTree, gomory_hu_tree
from .graphs import complete_graph, cut_set, split_graph, tour_length, trace_tour
from .simplex_pricing import (
    BlandPricing,
    DevexPricing,
    GreedyPricing,
    GreedyThenBlandPricing,
    PricingStrategy,
)
from .solver import LPSolver, ScipyLPSolver, SimplexLPSolver, minimize
from .validation import CostAnalysis, NumericWarning, analyze_edge_costs, validate_tour_problem

__version__ = "0.1.0"

__all__ = [
    # Main API
    "minimize",
    "branch_and_cut_tsp",
    "branch_and_bound_tsp",
    "min_cost_cut",
    "gomory_hu_tree",
    "max_flow",
    # LP solvers
    "LPSolver",
    "SimplexLPSolver",
    "ScipyLPSolver",
    # Pivot rules
    "PricingStrategy",
    "BlandPricing",
    "GreedyPricing",
    "DevexPricing",
    "GreedyThenBlandPricing",
    # Configuration
    "SolverOptions",
    # Data model
    "Constraint",
    "DenseConstraint",
    "SparseConstraint",
    "ConstraintSystem",
    "dense_constraints",
    "Solution",
    "Solved",
    "Unbounded",
    "Infeasible",
    "Cut",
    "Flow",
    "GomoryHuTree",
    "SearchNode",
    "BranchAndCutSearch",
    # Graph utilities
    "complete_graph",
    "cut_set",
    "split_graph",
    "trace_tour",
    "tour_length",
    # Numeric validation
    "analyze_edge_costs",
    "validate_tour_problem",
    "CostAnalysis",
    "NumericWarning",
    # Exceptions
    "TourSolverError",
    "InvalidProblemError",
    "SolverInvariantError",
    "NumericalInstabilityError",
    "SolverConfigurationError",
    # Version
    "__version__",
]
