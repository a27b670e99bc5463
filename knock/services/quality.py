"""
Quality Scoring
Heuristic 0-100 score attached to completed jobs.
"""

from dataclasses import dataclass
from typing import Callable

from knock.schemas.agents import NeedVector, CharacterProfile, GeneratedPrompt, GeneratedAsset

TARGET_TOKENS = 2500


@dataclass
class QualityInputs:
    need_vector: NeedVector
    character: CharacterProfile
    generated_prompt: GeneratedPrompt
    asset: GeneratedAsset


QualityScorer = Callable[[QualityInputs], float]


def score_quality(inputs: QualityInputs) -> float:
    """
    Weighted sum of five signals:
    need clarity 20, experience richness 30, prompt validation 30,
    token fit 10, image source 10 (generated) or 5 (preset).
    """
    scores = inputs.need_vector.scores()
    mean_actual = sum(scores.values()) / len(scores) if scores else 0.0
    if mean_actual > 0.6:
        clarity = 1.0
    elif mean_actual > 0.4:
        clarity = 0.8
    else:
        clarity = 0.6

    experiences = len(inputs.character.selected_experiences)
    if experiences >= 5:
        richness = 1.0
    elif experiences >= 3:
        richness = 0.8
    else:
        richness = 0.6

    validation = inputs.generated_prompt.validation
    if validation.passed:
        prompt_score = 1.0
    elif validation.critical:
        prompt_score = 0.5
    else:
        prompt_score = 0.7

    ratio = inputs.generated_prompt.token_count / TARGET_TOKENS
    token_fit = 1.0 if 0.8 < ratio < 1.2 else 0.8

    image_points = 10 if inputs.asset.source == "generated" else 5

    total = clarity * 20 + richness * 30 + prompt_score * 30 + token_fit * 10 + image_points
    return float(max(0, min(100, round(total))))
