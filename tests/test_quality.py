import copy
from datetime import datetime

from conftest import NEED_VECTOR_PAYLOAD
from knock.schemas.agents import (
    AssetMetadata, GeneratedAsset, GeneratedPrompt, NeedVector, PromptValidation, SelectedExperience,
)
from knock.services.quality import QualityInputs, score_quality


def _need_vector(actual):
    payload = copy.deepcopy(NEED_VECTOR_PAYLOAD)
    for entry in payload["completeVector"]:
        entry["actual"] = actual
    return NeedVector.model_validate(payload)


def _prompt(token_count, passed=True, critical=False):
    return GeneratedPrompt(
        system_prompt="...",
        validation=PromptValidation(passed=passed, critical=critical),
        token_count=token_count,
        template_id="default-template-v1",
    )


def _asset(source):
    return GeneratedAsset(
        image_ref="/presets/gamer-den.png",
        source=source,
        preset_id="gamer-den" if source == "preset" else None,
        metadata=AssetMetadata(prompt="room", timestamp=datetime(2024, 1, 1)),
    )


def test_perfect_inputs_score_100(character):
    rich = character.model_copy(update={
        "selected_experiences": [SelectedExperience(id=f"exp-{i}") for i in range(5)],
    })

    score = score_quality(QualityInputs(_need_vector(0.9), rich, _prompt(2500), _asset("generated")))

    assert score == 100.0


def test_weak_inputs_score_low(character):
    sparse = character.model_copy(update={"selected_experiences": []})

    score = score_quality(QualityInputs(
        _need_vector(0.1), sparse, _prompt(100, passed=False, critical=True), _asset("preset"),
    ))

    # 12 + 18 + 15 + 8 + 5
    assert score == 58.0


def test_typical_dry_run_score(character, need_vector):
    score = score_quality(QualityInputs(
        need_vector, character, _prompt(900, passed=False), _asset("preset"),
    ))

    # 16 + 24 + 21 + 8 + 5
    assert score == 74.0
    assert isinstance(score, float)
