# -*- coding: utf-8 -*-
"""
blueprint.py - Expressions composed of named sub-expressions

A ``BlueprintExpression`` owns one tree per name and a fixed combining
function ``structure(values: dict[str, ndarray]) -> ndarray``. Each name may
only use the features listed for it in ``variable_mapping``. Mutation acts on
one named tree at a time:

    tree, key = expr.get_contents_for_mutation(rng)
    new_expr = expr.with_contents_for_mutation(mutated_copy_of_tree, key)

Example
-------
>>> options = Options(blueprint_structure=lambda v: v["f"] * v["g"],
...                   variable_mapping={"f": [1], "g": [2, 3]})
"""
from typing import Callable, Dict, Optional, Sequence, Tuple

import numpy as np

from .check_constraints import check_constraints as check_tree_constraints
from .complexity import compute_complexity
from .evaluate import eval_tree_array, is_good_array
from .mutation_functions import gen_random_tree
from .tree import Node, get_constants, set_constants, string_tree


class BlueprintExpression:
    """Named trees combined by ``structure``."""

    def __init__(self, trees: Dict[str, Node], structure: Callable,
                 variable_mapping: Dict[str, Sequence[int]]):
        if set(trees) != set(variable_mapping):
            raise ValueError(
                f"trees {sorted(trees)} and variable_mapping {sorted(variable_mapping)} must have the same keys"
            )
        self.trees = dict(trees)
        self.structure = structure
        self.variable_mapping = variable_mapping

    @classmethod
    def random(cls, options, rng, nlength: int = 3) -> "BlueprintExpression":
        trees = {
            key: gen_random_tree(nlength, options, list(features), rng)
            for key, features in options.variable_mapping.items()
        }
        return cls(trees, options.blueprint_structure, options.variable_mapping)

    def _new(self, trees: Dict[str, Node]) -> "BlueprintExpression":
        return BlueprintExpression(trees, self.structure, self.variable_mapping)

    def copy(self) -> "BlueprintExpression":
        return self._new({key: tree.copy() for key, tree in self.trees.items()})

    def map_trees(self, fn: Callable[[Node], Node]) -> "BlueprintExpression":
        return self._new({key: fn(tree) for key, tree in self.trees.items()})

    # -- evaluation -----------------------------------------------------------
    def evaluate(self, cX: np.ndarray, options) -> Tuple[np.ndarray, bool]:
        n = cX.shape[1]
        values = {}
        for key, tree in self.trees.items():
            out, complete = eval_tree_array(tree, cX, options)
            if not complete:
                return np.empty(n), False
            values[key] = out
        with np.errstate(all="ignore"):
            result = np.asarray(self.structure(values), dtype=float)
        if result.shape != (n,):
            result = np.broadcast_to(result, (n,)).copy()
        return result, is_good_array(result)

    # -- constants ------------------------------------------------------------
    def get_constants(self) -> np.ndarray:
        parts = [get_constants(tree) for tree in self.trees.values()]
        if not parts:
            return np.zeros(0)
        return np.concatenate(parts)

    def set_constants(self, values):
        values = np.asarray(values, dtype=float)
        start = 0
        for tree in self.trees.values():
            stop = start + len(get_constants(tree))
            set_constants(tree, values[start:stop])
            start = stop

    # -- constraints and mutation ---------------------------------------------
    def check_constraints(self, options, maxsize: int, cursize: Optional[int] = None) -> bool:
        """Total complexity within ``maxsize`` and every tree valid for its features."""
        size = compute_complexity(self, options) if cursize is None else cursize
        if size > maxsize:
            return False
        for key, tree in self.trees.items():
            if not check_tree_constraints(tree, options, maxsize,
                                          allowed_features=self.variable_mapping[key]):
                return False
        return True

    def get_contents_for_mutation(self, rng) -> Tuple[Node, str]:
        keys = list(self.trees)
        key = keys[rng.randint(len(keys))]
        return self.trees[key], key

    def with_contents_for_mutation(self, new_tree: Node, key: str) -> "BlueprintExpression":
        if key not in self.trees:
            raise KeyError(f"No sub-expression named {key!r}")
        trees = {k: (new_tree if k == key else t.copy()) for k, t in self.trees.items()}
        return self._new(trees)

    # -- display --------------------------------------------------------------
    def string(self, options=None, variable_names: Optional[Sequence[str]] = None) -> str:
        return "; ".join(f"{key} = {string_tree(tree, options, variable_names)}"
                         for key, tree in self.trees.items())

    def __repr__(self):
        return f"BlueprintExpression({self.string()})"
