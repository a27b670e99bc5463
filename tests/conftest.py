"""Shared fixtures: in-memory database, fake remote models, canned payloads and the API client."""

import asyncio
import copy
import json

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from knock.agents.orchestrator import PipelineOrchestrator, default_stages
from knock.api.deps import get_db
from knock.core.config import Settings
from knock.core.database import init_db
from knock.core.exceptions import RemoteModelError
from knock.main import app
from knock.schemas.agents import NeedVector, CharacterProfile
from knock.schemas.pipeline import PipelineContext, PipelineInput
from knock.services.data_pool import SQLDataPoolStore
from knock.services.job_store import SQLJobStore
from knock.services.storage import StorageService


NEED_VECTOR_PAYLOAD = {
    "presenceVector": [
        {"need": "belonging", "intensity": 0.8, "evidence": ["reddit.com"], "interpretation": "Seeks community"},
        {"need": "growth", "intensity": 0.7, "evidence": ["stackoverflow.com"], "interpretation": "Keeps learning"},
    ],
    "deficiencyVector": [
        {"need": "belonging", "type": "FRUSTRATED", "evidence": "Many forum visits", "hiddenIntensity": 0.9, "reason": "Lonely"},
    ],
    "completeVector": [
        {"need": "survival", "observed": 0.3, "hidden": 0.3, "actual": 0.3, "gap": 0.0, "state": "balanced"},
        {"need": "belonging", "observed": 0.6, "hidden": 0.9, "actual": 0.85, "gap": 0.3, "state": "deficient"},
        {"need": "recognition", "observed": 0.6, "hidden": 0.7, "actual": 0.7, "gap": 0.1, "state": "deficient"},
        {"need": "autonomy", "observed": 0.5, "hidden": 0.6, "actual": 0.55, "gap": 0.1, "state": "balanced"},
        {"need": "growth", "observed": 0.7, "hidden": 0.8, "actual": 0.75, "gap": 0.1, "state": "balanced"},
        {"need": "meaning", "observed": 0.4, "hidden": 0.4, "actual": 0.4, "gap": 0.0, "state": "balanced"},
    ],
    "paradoxes": [
        {"needA": "belonging", "needB": "autonomy", "intensityA": 0.85, "intensityB": 0.55, "tension": 0.6,
         "description": "Wants connection but also independence"},
    ],
}

CHARACTER_PAYLOAD = {
    "character": {
        "name": "Minsu",
        "archetype": "developer_gamer",
        "keywords": ["gamer", "code nerd", "night owl"],
        "selectedExperiences": [
            {"id": "exp-belonging-001", "customization": "Still remembers the empty lunch table"},
            {"id": "exp-growth-001"},
            {"id": "exp-recognition-002"},
        ],
        "traumaAndLearning": {
            "learnedBeliefs": {
                "aboutWorld": ["The world is a lonely place"],
                "aboutPeople": ["People don't understand me"],
                "aboutSelf": ["I am only safe inside a community"],
            },
            "trauma": {
                "deepestFear": "Being rejected again",
                "neverAgain": "Being left alone",
                "avoidances": ["open conflict", "direct refusal"],
                "triggers": "Feeling excluded from the group",
            },
        },
        "survivalStrategies": [
            {"name": "Speaks in community slang", "purpose": "Confirm belonging", "effect": "I belong here",
             "cost": "Hard to talk with outsiders"},
            {"name": "Over-delivers on projects", "purpose": "Earn recognition", "effect": "People notice me",
             "cost": "Burns out easily"},
        ],
        "personalityTraits": {
            "surface": [
                {"trait": "Friendly", "behavior": "Lights up when games or code come up"},
                {"trait": "Playful", "behavior": "Jokes around constantly"},
                {"trait": "Curious", "behavior": "Asks about new tools"},
            ],
            "shadow": [
                {"trait": "Lonely", "behavior": "Feels there are no real friends"},
                {"trait": "Anxious", "behavior": "Rereads messages before sending"},
            ],
        },
        "conversationPatterns": {
            "frequentPhrases": [
                {"phrase": "lol same", "reason": "Confirms belonging"},
                {"phrase": "wanna see something cool?", "reason": "Shares to connect"},
                {"phrase": "one more round", "reason": "Avoids ending the moment"},
            ],
            "neverSays": [
                {"phrase": "You're wrong", "reason": "Avoids conflict"},
                {"phrase": "Leave me alone", "reason": "Fears being alone"},
            ],
            "style": {"length": "short", "speed": "fast", "tone": "light", "characteristics": "slang, emoji"},
        },
    }
}

INPUT_PAYLOAD = {
    "user_id": "user-123",
    "user_name": "Jisoo",
    "user_data": {
        "domains": ["github.com", "stackoverflow.com", "reddit.com/r/programming"],
        "keywords": ["typescript", "react", "docker"],
        "interests": ["programming", "games"],
        "avoid_topics": ["politics"],
    },
    "preferences": {"conversation_style": "casual", "response_length": "medium"},
    "language": "en",
    "dry_run": True,
}


class FakeTextModel:
    """Answers the Agent1 / Agent2 prompts with canned JSON."""

    def __init__(self, need_vector=None, character=None, fail_on=None):
        self.need_vector = need_vector if need_vector is not None else copy.deepcopy(NEED_VECTOR_PAYLOAD)
        self.character = character if character is not None else copy.deepcopy(CHARACTER_PAYLOAD)
        self.fail_on = fail_on
        self.on_call = None
        self.calls = []

    async def generate_text(self, prompt, temperature=0.7, max_tokens=4000, json_mode=False):
        if "character designer" in prompt:
            kind, payload = "character", self.character
        elif "fundamental human needs" in prompt:
            kind, payload = "need_vector", self.need_vector
        else:
            raise AssertionError(f"Unexpected prompt: {prompt[:80]}")

        self.calls.append((kind, temperature, json_mode))
        if self.on_call:
            self.on_call(kind)
        if self.fail_on == kind:
            raise RemoteModelError(f"{kind} provider unavailable")
        return payload if isinstance(payload, str) else json.dumps(payload)


class FakeImageModel:
    def __init__(self, data=b"\x89PNG fake", error=None, delay=0.0):
        self.data = data
        self.error = error
        self.delay = delay
        self.prompts = []

    async def generate_image(self, prompt):
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.data


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    init_db(bind=engine, session_factory=factory)
    yield factory
    engine.dispose()


@pytest.fixture()
def pool_store(session_factory):
    return SQLDataPoolStore(session_factory)


@pytest.fixture()
def job_store(session_factory):
    return SQLJobStore(session_factory)


@pytest.fixture()
def text_model():
    return FakeTextModel()


@pytest.fixture()
def storage(tmp_path):
    return StorageService(base_path=str(tmp_path / "uploads"))


@pytest.fixture()
def test_settings():
    return Settings(USE_AI_IMAGE_GENERATION=False, IMAGE_GENERATION_TIMEOUT=1.0)


@pytest.fixture()
def orchestrator(job_store, pool_store, text_model, test_settings):
    stages = default_stages(text_model, pool_store, settings=test_settings)
    return PipelineOrchestrator(job_store, stages)


@pytest.fixture()
def pipeline_input():
    return PipelineInput.model_validate(copy.deepcopy(INPUT_PAYLOAD))


@pytest.fixture()
def need_vector():
    return NeedVector.model_validate(copy.deepcopy(NEED_VECTOR_PAYLOAD))


@pytest.fixture()
def character():
    return CharacterProfile.model_validate(copy.deepcopy(CHARACTER_PAYLOAD["character"]))


@pytest.fixture()
def context(pipeline_input):
    return PipelineContext(job_id="job_test", input=pipeline_input)


@pytest.fixture()
def client(orchestrator, pool_store, session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.state.orchestrator = orchestrator
    app.state.pool_store = pool_store
    app.dependency_overrides[get_db] = override_get_db
    # no context manager: lifespan would rebuild the orchestrator from settings
    yield TestClient(app)
    app.dependency_overrides.clear()
    app.state.orchestrator = None
    app.state.pool_store = None
