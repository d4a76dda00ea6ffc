# FILE: tests/test_refinement.py
"""
Tests for score-gated, single-shot refinement.
"""
import json

import pytest

from architect.artifact_parser import parse_artifact
from architect.errors import UpstreamRateLimited
from architect.grading import GradingEngine, build_score_vector
from architect.pipeline_config import RUBRIC_DIMENSIONS
from architect.refinement import GateState, RefinementController, classify_composite

from conftest import ScriptedLlm, artifact_json, grade_json

CITATIONS = [{"uri": "kb://chunk/abc", "version": "1.0", "hash": "abc", "source": "faq.pdf"}]


def uniform_scores(value, config):
    return build_score_vector({d: value for d in RUBRIC_DIMENSIONS}, value, config.rubric_weights)


def original_artifact():
    return parse_artifact(artifact_json(), CITATIONS).artifact


def controller(config, synthesis_replies=(), grading_replies=()):
    synthesis = ScriptedLlm(*synthesis_replies)
    grading = ScriptedLlm(*grading_replies)
    return RefinementController(synthesis, GradingEngine(grading, config), config), synthesis, grading


class TestClassifyComposite:

    @pytest.mark.parametrize("composite,state", [
        (0.95, GateState.SHIPPED),
        (0.75, GateState.SHIPPED),
        (0.7499, GateState.NEEDS_REFINEMENT),
        (0.60, GateState.NEEDS_REFINEMENT),
        (0.5999, GateState.BELOW_FLOOR),
        (0.0, GateState.BELOW_FLOOR),
    ])
    def test_bands(self, config, composite, state):
        assert classify_composite(composite, config) is state


class TestRefinementController:

    @pytest.mark.asyncio
    async def test_high_score_ships_without_calls(self, config):
        ctl, synthesis, grading = controller(config)
        artifact = original_artifact()

        outcome = await ctl.run(artifact, uniform_scores(0.85, config), CITATIONS)

        assert outcome.artifact is artifact
        assert outcome.gate == "shipped"
        assert outcome.refinement_attempted is False
        assert outcome.refine_ms is None
        assert synthesis.calls == [] and grading.calls == []

    @pytest.mark.asyncio
    async def test_below_floor_ships_flagged(self, config):
        ctl, synthesis, grading = controller(config)
        artifact = original_artifact()

        outcome = await ctl.run(artifact, uniform_scores(0.5, config), CITATIONS)

        assert outcome.artifact is artifact
        assert outcome.gate == "below_floor"
        assert outcome.low_confidence is True
        assert synthesis.calls == [] and grading.calls == []

    @pytest.mark.asyncio
    async def test_small_uplift_keeps_original(self, config):
        ctl, synthesis, grading = controller(
            config,
            synthesis_replies=[artifact_json(confidence=0.95)],
            grading_replies=[grade_json(0.705)],
        )
        artifact = original_artifact()
        before = json.loads(json.dumps(artifact))
        scores = uniform_scores(0.70, config)

        outcome = await ctl.run(artifact, scores, CITATIONS)

        assert outcome.artifact is artifact
        assert outcome.artifact == before
        assert outcome.scores is scores
        assert outcome.gate == "refinement_rejected"
        assert outcome.refinement_attempted is True
        assert outcome.refinement_accepted is False
        assert outcome.low_confidence is False
        assert isinstance(outcome.refine_ms, int)

    @pytest.mark.asyncio
    async def test_material_uplift_accepted(self, config):
        ctl, synthesis, grading = controller(
            config,
            synthesis_replies=[artifact_json(confidence=0.93)],
            grading_replies=[grade_json(0.80, confidence=0.82)],
        )
        scores = uniform_scores(0.70, config)

        outcome = await ctl.run(original_artifact(), scores, CITATIONS)

        assert outcome.gate == "refined"
        assert outcome.artifact["confidence"] == 0.93
        assert outcome.scores.composite >= scores.composite + config.min_uplift
        assert outcome.artifact["citations"] == CITATIONS

    @pytest.mark.asyncio
    async def test_runs_at_most_once(self, config):
        weak = build_score_vector(
            {"IntentAccuracy": 0.61, "TaskCompletion": 0.62, "PolicyAdherence": 0.63,
             "ToneFit": 0.64, "FormatCompliance": 0.65},
            0.6,
            config.rubric_weights,
        )
        ctl, synthesis, grading = controller(
            config,
            synthesis_replies=[artifact_json(), artifact_json()],
            grading_replies=[grade_json(0.62), grade_json(0.99)],
        )

        outcome = await ctl.run(original_artifact(), weak, CITATIONS)

        assert len(synthesis.calls) == 1
        assert len(grading.calls) == 1
        assert outcome.gate == "refinement_rejected"

    @pytest.mark.asyncio
    async def test_prompt_names_weak_dimensions(self, config):
        ctl, synthesis, _ = controller(config, [artifact_json()], [grade_json(0.70)])
        scores = build_score_vector(
            {"IntentAccuracy": 0.85, "TaskCompletion": 0.5, "PolicyAdherence": 0.9,
             "ToneFit": 0.6, "FormatCompliance": 0.9},
            0.7,
            config.rubric_weights,
        )

        await ctl.run(original_artifact(), scores, CITATIONS)

        prompt = synthesis.calls[0][1].content
        assert "Weakest dimensions: TaskCompletion, ToneFit" in prompt
        assert ">=0.80" in prompt

    @pytest.mark.asyncio
    async def test_unparseable_refinement_rejected(self, config):
        ctl, _, grading = controller(config, ["sorry, no JSON today"], [])
        artifact = original_artifact()

        outcome = await ctl.run(artifact, uniform_scores(0.65, config), CITATIONS)

        assert outcome.artifact is artifact
        assert outcome.gate == "refinement_rejected"
        assert grading.calls == []

    @pytest.mark.asyncio
    async def test_fallback_regrade_rejected(self, config):
        ctl, _, _ = controller(config, [artifact_json()], ["looks great"])
        artifact = original_artifact()

        outcome = await ctl.run(artifact, uniform_scores(0.65, config), CITATIONS)

        assert outcome.artifact is artifact
        assert outcome.refinement_accepted is False

    @pytest.mark.asyncio
    async def test_upstream_error_propagates(self, config):
        ctl, _, _ = controller(config, [UpstreamRateLimited("busy")], [])
        with pytest.raises(UpstreamRateLimited):
            await ctl.run(original_artifact(), uniform_scores(0.65, config), CITATIONS)


class TestGateBoundaries:

    @pytest.mark.parametrize("value,state", [
        (0.60, GateState.NEEDS_REFINEMENT),
        (0.75, GateState.SHIPPED),
    ])
    def test_uniform_scores_on_threshold(self, config, value, state):
        assert classify_composite(uniform_scores(value, config).composite, config) is state

    @pytest.mark.asyncio
    async def test_uniform_floor_gets_refined(self, config):
        ctl, synthesis, grading = controller(config, [artifact_json()], [grade_json(0.60)])

        outcome = await ctl.run(original_artifact(), uniform_scores(0.60, config), CITATIONS)

        assert outcome.refinement_attempted is True
        assert outcome.low_confidence is False
        assert len(synthesis.calls) == 1
