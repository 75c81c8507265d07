import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() not in ("0", "false", "no", "off", "")


class Config:
    """Base configuration shared across environments."""

    TEXT_GENERATOR_MODEL_PATH = os.environ.get(
        "TEXT_GENERATOR_MODEL_PATH", "HuggingFaceTB/SmolLM2-135M-Instruct"
    )
    TEXT_GENERATOR_USE_4BIT = _env_flag("TEXT_GENERATOR_USE_4BIT", True)
    MODEL_SIZE_MB = int(os.environ.get("MODEL_SIZE_MB", "150"))
    ASSISTANT_NAME = os.environ.get("ASSISTANT_NAME", "Claude")


class TestConfig(Config):
    TESTING = True
    TEXT_GENERATOR_MODEL_PATH = None
