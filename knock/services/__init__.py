# Services package - persistence and external integrations
from knock.services.llm import TextModel, ImageModel, get_text_model, get_image_model
from knock.services.storage import StorageService
from knock.services.job_store import JobStore, SQLJobStore
from knock.services.data_pool import SQLDataPoolStore
from knock.services.quality import QualityInputs, score_quality

__all__ = [
    "TextModel",
    "ImageModel",
    "get_text_model",
    "get_image_model",
    "StorageService",
    "JobStore",
    "SQLJobStore",
    "SQLDataPoolStore",
    "QualityInputs",
    "score_quality",
]
