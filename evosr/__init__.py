"""evosr: Evolutionary Symbolic Regression with Regularized Evolution"""
from .blueprint import BlueprintExpression
from .check_constraints import check_constraints
from .complexity import compute_complexity
from .constant_optimization import optimize_constants
from .dataset import Dataset, update_baseline_loss
from .evaluate import eval_tree_array
from .hall_of_fame import HallOfFame, calculate_pareto_frontier, choose_best, frontier_dataframe
from .inverse_functions import (MissingInverseError, Partial, approx_inverse,
                                register_approx_inverse, register_partial_inverse,
                                try_approx_inverse)
from .loss_functions import LossCache, eval_loss, loss_to_score, score_func, score_func_batch
from .mutate import crossover_generation, next_generation
from .mutation_functions import gen_random_tree, gen_random_tree_fixed_size
from .operators import OperatorSet, OperatorSpec
from .options import MutationWeights, Options
from .pop_member import PopMember
from .population import Population, best_of_sample, best_sub_pop
from .search import equation_search
from .tree import Node, string_tree

__version__ = "0.1.0"
