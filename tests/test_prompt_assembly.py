import asyncio

import pytest

from knock.agents.prompt_assembly import PromptAssemblyStage, count_tokens, validate_system_prompt
from knock.core.exceptions import PromptValidationError, StageError
from knock.schemas.data_pool import PromptTemplateCreate


@pytest.fixture()
def ready_context(context, need_vector, character):
    context.need_vector = need_vector
    context.character = character
    return context


def test_renders_sections_in_order(ready_context, pool_store):
    result = asyncio.run(PromptAssemblyStage(pool_store).run(ready_context))
    prompt = result.system_prompt

    assert prompt.startswith("# System Prompt: Minsu")
    headings = ["## WHY", "## PAST", "## TRAUMA", "## HOW", "## PERSONALITY", "## WHAT", "## RELATIONSHIP"]
    positions = [prompt.index(h) for h in headings]
    assert positions == sorted(positions)
    assert prompt.count("\n---\n") == len(headings) - 1
    assert "Jisoo's roommate" in prompt
    assert "Left out at school (age 13)" in prompt
    assert "Still remembers the empty lunch table" in prompt
    assert '"lol same" (Confirms belonging)' in prompt
    assert "{" not in prompt


def test_reports_template_and_token_count(ready_context, pool_store):
    result = asyncio.run(PromptAssemblyStage(pool_store).run(ready_context))

    assert result.template_id == "default-template-v1"
    assert result.template_version == "1.0"
    assert result.token_count == count_tokens(result.system_prompt)
    assert not result.validation.critical


def test_uses_requested_template(ready_context, pool_store):
    sections = {
        "why": "## WHY\n{character_name} needs {needs_block}",
        "how": "## HOW\n{strategies_block}",
        "what": "## WHAT\n{frequent_phrases_block}",
    }
    pool_store.create_template(PromptTemplateCreate(id="short-v2", name="Short", version="2.0", sections=sections))
    context = ready_context.model_copy(update={
        "input": ready_context.input.model_copy(update={"template_id": "short-v2"}),
    })

    result = asyncio.run(PromptAssemblyStage(pool_store).run(context))

    assert result.template_id == "short-v2"
    assert "## PAST" not in result.system_prompt
    assert "Too short" in " ".join(result.validation.issues)


def test_unknown_template_fails(ready_context, pool_store):
    context = ready_context.model_copy(update={
        "input": ready_context.input.model_copy(update={"template_id": "missing"}),
    })

    with pytest.raises(StageError, match="Template not found"):
        asyncio.run(PromptAssemblyStage(pool_store).run(context))


def test_unknown_placeholder_is_critical(ready_context, pool_store):
    sections = {
        "why": "## WHY\n{character_name} {favourite_colour}",
        "how": "## HOW\n{strategies_block}",
        "what": "## WHAT\n{frequent_phrases_block}",
    }
    pool_store.create_template(PromptTemplateCreate(id="broken", name="Broken", sections=sections))
    context = ready_context.model_copy(update={
        "input": ready_context.input.model_copy(update={"template_id": "broken"}),
    })

    with pytest.raises(PromptValidationError) as exc_info:
        asyncio.run(PromptAssemblyStage(pool_store).run(context))

    assert "Contains compilation errors" in exc_info.value.issues


def test_missing_required_section_is_critical(ready_context, pool_store):
    sections = {"why": "## WHY\n{character_name}", "what": "## WHAT\n{style_tone}"}
    pool_store.create_template(PromptTemplateCreate(id="no-how", name="No HOW", sections=sections))
    context = ready_context.model_copy(update={
        "input": ready_context.input.model_copy(update={"template_id": "no-how"}),
    })

    with pytest.raises(PromptValidationError, match="Missing HOW section"):
        asyncio.run(PromptAssemblyStage(pool_store).run(context))


def test_validation_token_window():
    body = "## WHY\n## HOW\n## WHAT\n"
    assert validate_system_prompt(body + "x" * 3500 * 2).passed
    too_long = validate_system_prompt(body + "x" * 3500 * 5)
    assert not too_long.passed and not too_long.critical
    assert "Too long" in too_long.issues[0]


def test_count_tokens_rounds_up():
    assert count_tokens("") == 0
    assert count_tokens("abcd") == 2
    assert count_tokens("x" * 35) == 10


def test_braces_in_model_text_are_kept(ready_context, pool_store):
    ready_context.character.conversation_patterns.frequent_phrases[0].phrase = "hugs {{}}"

    result = asyncio.run(PromptAssemblyStage(pool_store).run(ready_context))

    assert '"hugs {{}}"' in result.system_prompt
    assert not result.validation.critical
    assert validate_system_prompt("## WHY\n## HOW\n## WHAT\n{{x}}").critical is False
