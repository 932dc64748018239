# -*- coding: utf-8 -*-
"""
Options and layered override tests

Covers:
  1) merge_hparams priority (explicit > json > defaults) and validation
  2) Options.from_hparams
  3) Options validation errors
  4) derived operator views (constraints, complexity weights)
"""
import json

import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


# ==========================================================
# Test 1: merge_hparams utility
# ==========================================================
class TestMergeHparams:
    """Unit tests for utils.hparams.merge_hparams."""

    def test_defaults_only(self):
        from utils.hparams import merge_hparams

        defaults = {"maxsize": 20, "populations": 15}
        result = merge_hparams(defaults)
        assert result == defaults
        # Must be a fresh copy
        assert result is not defaults

    def test_json_overrides_defaults(self):
        from utils.hparams import merge_hparams

        result = merge_hparams({"maxsize": 20, "populations": 15}, {"maxsize": 30})
        assert result["maxsize"] == 30
        assert result["populations"] == 15

    def test_cli_overrides_json(self):
        from utils.hparams import merge_hparams

        result = merge_hparams({"maxsize": 20}, {"maxsize": 30}, {"maxsize": 12})
        assert result["maxsize"] == 12

    def test_cli_none_does_not_override(self):
        from utils.hparams import merge_hparams

        result = merge_hparams({"maxsize": 20}, {"maxsize": 30}, {"maxsize": None})
        assert result["maxsize"] == 30

    def test_json_string_parsed(self):
        from utils.hparams import merge_hparams

        assert merge_hparams({"maxsize": 20}, '{"maxsize": 10}')["maxsize"] == 10

    def test_empty_json_string(self):
        from utils.hparams import merge_hparams

        assert merge_hparams({"maxsize": 20}, "{}")["maxsize"] == 20

    def test_json_file(self, tmp_path):
        from utils.hparams import merge_hparams

        path = tmp_path / "opts.json"
        path.write_text(json.dumps({"maxsize": 7}), encoding="utf-8")
        assert merge_hparams({"maxsize": 20}, "@" + str(path))["maxsize"] == 7
        assert merge_hparams({"maxsize": 20}, str(path))["maxsize"] == 7

    def test_missing_file_raises(self, tmp_path):
        from utils.hparams import merge_hparams

        with pytest.raises(ValueError, match="Failed to load"):
            merge_hparams({}, "@" + str(tmp_path / "missing.json"))

    def test_invalid_json_raises(self):
        from utils.hparams import merge_hparams

        with pytest.raises(ValueError, match="Failed to parse"):
            merge_hparams({}, "not-valid-json{")

    def test_non_object_json_raises(self):
        from utils.hparams import merge_hparams

        with pytest.raises(ValueError, match="must be an object"):
            merge_hparams({}, "[1, 2]")

    def test_unknown_keys_raise(self):
        from utils.hparams import merge_hparams

        with pytest.raises(ValueError, match="Unknown option"):
            merge_hparams({"maxsize": 20}, {"max_size": 10}, allowed={"maxsize"})


# ==========================================================
# Test 2: Options.from_hparams
# ==========================================================
class TestFromHparams:

    def test_layers(self):
        from evosr.options import Options

        options = Options.from_hparams('{"maxsize": 12, "populations": 3}', populations=5, seed=None)
        assert options.maxsize == 12
        assert options.populations == 5
        assert options.seed is None

    def test_mutation_weights_from_json(self):
        from evosr.options import MutationWeights, Options

        options = Options.from_hparams({"mutation_weights": {"insert_node": 1.0}})
        assert isinstance(options.mutation_weights, MutationWeights)
        assert options.mutation_weights.insert_node == 1.0
        assert options.mutation_weights.delete_node == MutationWeights().delete_node

    def test_unknown_option_raises(self):
        from evosr.options import Options

        with pytest.raises(ValueError, match="Unknown option"):
            Options.from_hparams({"populaton_size": 10})


# ==========================================================
# Test 3: validation
# ==========================================================
class TestValidation:

    @pytest.mark.parametrize("kwargs, message", [
        ({"maxsize": 0}, "maxsize"),
        ({"binary_operators": (), "unary_operators": ()}, "At least one"),
        ({"binary_operators": ("nope",)}, "Unknown binary operator"),
        ({"tournament_selection_n": 100}, "tournament_selection_n"),
        ({"crossover_probability": 1.5}, "crossover_probability"),
        ({"optimizer_algorithm": "LBFGS"}, "optimizer_algorithm"),
        ({"model_selection": "best"}, "model_selection"),
        ({"loss": "L3Loss"}, "Unknown loss"),
        ({"deterministic": True}, "seed"),
        ({"use_loss_cache": True, "loss_cache_size": 0}, "loss_cache_size"),
        ({"constraints": {"cos": 1}}, "not in the active operator set"),
        ({"constraints": {"+": 1}}, "must be a pair"),
    ])
    def test_invalid(self, kwargs, message):
        from evosr.options import Options

        with pytest.raises(ValueError, match=message):
            Options(**kwargs)


# ==========================================================
# Test 4: derived views
# ==========================================================
class TestDerived:

    def test_operator_table(self):
        from evosr.options import Options

        options = Options(binary_operators=("+", "*"), unary_operators=("cos",))
        assert (options.nbin, options.nuna) == (2, 1)
        assert [op.name for op in options.operators.binops] == ["plus", "mult"]
        assert options.maxdepth == options.maxsize

    def test_constraints_are_indexed(self):
        from evosr.options import Options

        options = Options(binary_operators=("+", "^"), unary_operators=("cos",),
                          constraints={"^": (-1, 1), "cos": 3})
        assert options.bin_constraints == ((-1, -1), (-1, 1))
        assert options.una_constraints == (3,)

    def test_complexity_weights(self):
        from evosr.options import Options

        plain = Options()
        assert not plain.use_complexity_mapping
        weighted = Options(complexity_of_operators={"/": 2})
        assert weighted.use_complexity_mapping
        assert weighted.binop_complexity == (1.0, 1.0, 1.0, 2.0)
