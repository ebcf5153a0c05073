import os
import sys

# Ensure project root is on sys.path for test imports
ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

# Avoid cross-test contamination: Settings are cached via lru_cache and depend on env vars.
import pytest  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_settings_cache(monkeypatch: pytest.MonkeyPatch) -> None:
    from mcq_study.services import storage
    from mcq_study.utils.settings import get_settings

    monkeypatch.setattr(storage, "_CACHED_STORE", None)
    monkeypatch.setattr(storage, "_CACHED_STORE_CONFIG", None)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class _FakeMessage:
    def __init__(self, content):
        self.content = content


class _FakeChoice:
    def __init__(self, content):
        self.message = _FakeMessage(content)


class FakeResponse:
    def __init__(self, content):
        self.choices = [_FakeChoice(content)]
        self.usage = None


class _FakeChatCompletions:
    def __init__(self, owner):
        self._owner = owner

    def create(self, *args, **kwargs):  # noqa: ANN001, ANN002, ANN003
        self._owner.calls.append(kwargs)
        outcome = self._owner.outcomes.pop(0) if len(self._owner.outcomes) > 1 else self._owner.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return FakeResponse(outcome)


class _FakeChat:
    def __init__(self, owner):
        self.completions = _FakeChatCompletions(owner)


class FakeOpenAI:
    """
    Stand-in for `openai.OpenAI`.

    `outcomes` is consumed in order (the last one repeats); each is the
    completion text or an exception to raise.
    """

    instances: list = []

    def __init__(self, outcomes, **client_kwargs):
        self.outcomes = outcomes  # shared with the fixture script across clients
        self.client_kwargs = client_kwargs
        self.calls: list[dict] = []
        self.chat = _FakeChat(self)


@pytest.fixture
def fake_openai(monkeypatch: pytest.MonkeyPatch):
    """Patch the SDK constructor; returns a setter for the scripted outcomes."""
    from tenacity import wait_none

    from mcq_study.services import llm

    created: list[FakeOpenAI] = []
    script: dict = {"outcomes": [""]}

    def _factory(**kwargs):
        client = FakeOpenAI(script["outcomes"], **kwargs)
        created.append(client)
        return client

    def _set(*outcomes):
        script["outcomes"] = list(outcomes)
        return created

    monkeypatch.setattr(llm, "OpenAI", _factory)
    monkeypatch.setattr(llm, "RETRY_WAIT", wait_none())
    return _set
