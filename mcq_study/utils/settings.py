from functools import lru_cache
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
import os


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    openai_api_key: str | None = Field(default=None, validation_alias="OPENAI_API_KEY")
    openai_base_url: str = Field(default="https://api.openai.com/v1", validation_alias="OPENAI_BASE_URL")

    gemini_api_key: str | None = Field(default=None, validation_alias="GEMINI_API_KEY")
    # Gemini exposes an OpenAI-compatible surface; one SDK covers both providers.
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta/openai/",
        validation_alias="GEMINI_BASE_URL",
    )

    model_vision: str = Field(default="gemini-2.0-flash", validation_alias="MODEL_VISION")
    model_explanation_openai: str = Field(default="gpt-4o-mini", validation_alias="MODEL_EXPLANATION_OPENAI")
    model_explanation_gemini: str = Field(default="gemini-2.0-flash", validation_alias="MODEL_EXPLANATION_GEMINI")

    # Values: gemini | openai
    vision_provider: str = Field(default="gemini", validation_alias="VISION_PROVIDER")
    llm_client_timeout_seconds: int = Field(default=60, validation_alias="LLM_CLIENT_TIMEOUT_SECONDS")
    llm_max_retries: int = Field(default=3, validation_alias="LLM_MAX_RETRIES")
    vision_max_tokens: int = Field(default=4096, validation_alias="VISION_MAX_TOKENS")
    explanation_max_tokens: int = Field(default=500, validation_alias="EXPLANATION_MAX_TOKENS")

    # Base64 payloads shorter than this are almost always truncated uploads.
    ocr_min_image_chars: int = Field(default=1000, validation_alias="OCR_MIN_IMAGE_CHARS")

    # Values:
    # - first_option: a row without a correct answer gets its first option
    # - reject: such rows are skipped as MISSING_ANSWER
    missing_answer_policy: str = Field(default="first_option", validation_alias="MISSING_ANSWER_POLICY")

    # Topic store: Redis (remote) mirrored into a local JSON file.
    redis_url: str | None = Field(default=None, validation_alias="REDIS_URL")
    store_prefix: str = Field(default="mcq:", validation_alias="STORE_PREFIX")
    require_remote_store: bool = Field(default=False, validation_alias="REQUIRE_REMOTE_STORE")
    local_store_path: str = Field(
        default=os.path.join("data", "topics.json"),
        validation_alias="LOCAL_STORE_PATH",
    )
    default_user_id: str = Field(default="default", validation_alias="DEFAULT_USER_ID")

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_to_file: bool = Field(default=False, validation_alias="LOG_TO_FILE")
    log_file_path: str = Field(
        default=os.path.join("logs", "mcq_study.log"),
        validation_alias="LOG_FILE_PATH",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
