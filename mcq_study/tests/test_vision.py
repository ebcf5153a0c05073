import json

import httpx
import pytest
from openai import OpenAIError

from mcq_study.services.vision import VisionClient, split_data_url
from mcq_study.utils.errors import (
    InvalidImageError,
    LLMServiceError,
    LLMTimeoutError,
    MalformedResponseError,
    MissingApiKeyError,
)

IMAGE = "A" * 2000
PAGE = json.dumps(
    {
        "pageNo": "22",
        "questions": [
            {"no": "22.", "question": "Which are correct?", "options": ["P", "Q", "R", "S"], "correctAnswer": "p and q"}
        ],
    }
)


@pytest.fixture(autouse=True)
def _keys(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "AIza-test-key")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test-key")
    monkeypatch.delenv("VISION_PROVIDER", raising=False)


def test_extract_page_decodes_model_output(fake_openai):
    created = fake_openai("```json\n" + PAGE + "\n```")
    page = VisionClient().extract_page(IMAGE)

    assert page.page_no == "22"
    assert page.questions[0]["correctAnswer"] == "P AND Q"
    assert page.questions[0]["pageNo"] == "22"

    client = created[0]
    assert client.client_kwargs["base_url"].startswith("https://generativelanguage.googleapis.com")
    content = client.calls[0]["messages"][0]["content"]
    assert content[0]["image_url"]["url"] == "data:image/jpeg;base64," + IMAGE
    assert "pageNo" in content[1]["text"]


def test_existing_data_url_prefix_is_kept(fake_openai):
    created = fake_openai(PAGE)
    VisionClient().extract_page("data:image/png;base64," + IMAGE, provider="openai")
    client = created[0]
    assert client.client_kwargs["api_key"] == "sk-test-key"
    assert client.calls[0]["messages"][0]["content"][0]["image_url"]["url"] == "data:image/png;base64," + IMAGE


def test_empty_and_tiny_images_are_rejected(fake_openai):
    fake_openai(PAGE)
    with pytest.raises(InvalidImageError):
        VisionClient().extract_page("")
    with pytest.raises(InvalidImageError) as exc:
        VisionClient().extract_page("A" * 999)
    assert "too small" in str(exc.value)


def test_missing_key(fake_openai, monkeypatch):
    fake_openai(PAGE)
    monkeypatch.setenv("GEMINI_API_KEY", "")
    with pytest.raises(MissingApiKeyError):
        VisionClient().extract_page(IMAGE)


def test_timeouts_are_retried(fake_openai):
    created = fake_openai(httpx.ConnectTimeout("slow"), PAGE)
    page = VisionClient().extract_page(IMAGE)
    assert page.page_no == "22"
    assert len(created[0].calls) == 2


def test_persistent_timeouts_raise_after_configured_attempts(fake_openai, monkeypatch):
    monkeypatch.setenv("LLM_MAX_RETRIES", "2")
    created = fake_openai(httpx.ConnectTimeout("slow"))
    with pytest.raises(LLMTimeoutError) as exc:
        VisionClient().extract_page(IMAGE)
    assert exc.value.code.value == "E5002"
    assert len(created[0].calls) == 2


def test_provider_errors_are_not_retried(fake_openai):
    created = fake_openai(OpenAIError("quota exceeded"))
    with pytest.raises(LLMServiceError):
        VisionClient().extract_page(IMAGE)
    assert len(created[0].calls) == 1


def test_prose_only_response_is_malformed(fake_openai):
    fake_openai("Sorry, I cannot read this page.")
    with pytest.raises(MalformedResponseError):
        VisionClient().extract_page(IMAGE)


def test_extract_pages_in_order(fake_openai):
    second = PAGE.replace('"22"', '"23"')
    fake_openai(PAGE, second)
    pages = VisionClient().extract_pages([IMAGE, IMAGE])
    assert [p.page_no for p in pages] == ["22", "23"]


def test_split_data_url():
    assert split_data_url("data:image/webp;base64,QUJD") == ("image/webp", "QUJD")
    assert split_data_url("QUJD") == (None, "QUJD")
