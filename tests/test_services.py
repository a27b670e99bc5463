import pytest

from conftest import FakeImageModel, FakeTextModel
from knock.core.config import Settings
from knock.core.seed import ARCHETYPES, EXPERIENCES, VISUALS, seed_data_pools
from knock.models import ExperiencePool, PromptTemplate, VisualPool
from knock.services.groq_llm import GroqLLMService
from knock.services.llm import ImageModel, TextModel, get_image_model, get_text_model


def test_seed_is_idempotent(session_factory):
    db = session_factory()
    try:
        seed_data_pools(db)
        seed_data_pools(db)

        assert db.query(ExperiencePool).count() == len(EXPERIENCES)
        assert db.query(VisualPool).count() == len(VISUALS)
        assert db.query(PromptTemplate).filter(PromptTemplate.is_default == True).count() == 1  # noqa: E712
    finally:
        db.close()


def test_pool_queries(pool_store):
    experiences = pool_store.experiences_for_needs(["belonging"], limit=1)
    assert [e.id for e in experiences] == ["exp-belonging-001"]
    assert pool_store.experiences_for_needs([]) == []

    ordered = pool_store.experiences_by_ids(["exp-growth-001", "missing", "exp-belonging-001"])
    assert [e.id for e in ordered] == ["exp-growth-001", "exp-belonging-001"]

    assert len(pool_store.archetypes()) == len(ARCHETYPES)
    assert pool_store.visuals()[0].name == "dual monitors"


def test_default_template_lookup(pool_store):
    assert pool_store.get_template().id == "default-template-v1"
    assert pool_store.get_template("missing") is None


def test_text_model_factory():
    groq = get_text_model(Settings(LLM_PROVIDER="groq", GROQ_API_KEY="test-key"))
    assert isinstance(groq, GroqLLMService)

    with pytest.raises(ValueError, match="Unknown LLM_PROVIDER"):
        get_text_model(Settings(LLM_PROVIDER="openai"))


def test_image_model_requires_flag_and_key():
    assert get_image_model(Settings(USE_AI_IMAGE_GENERATION=False, GEMINI_API_KEY="key")) is None
    assert get_image_model(Settings(USE_AI_IMAGE_GENERATION=True, GEMINI_API_KEY="  ")) is None


def test_fakes_satisfy_model_protocols():
    assert isinstance(FakeTextModel(), TextModel)
    assert isinstance(FakeImageModel(), ImageModel)
