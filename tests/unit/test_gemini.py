"""
Tests for the Gemini model factory and the retrying call_llm wrapper.

No SDK is initialized: backend initializers and the model are replaced
with fakes.
"""

import pytest
from google.api_core.exceptions import DeadlineExceeded, InvalidArgument, ResourceExhausted
from tenacity import wait_none

from calvibes.llm import gemini, retry
from calvibes.observability.telemetry import get_counter


@pytest.fixture(autouse=True)
def clean_model_cache():
    gemini.clear_model_cache()
    yield
    gemini.clear_model_cache()


class FakeModel:
    """Stands in for a GenerativeModel, replaying scripted outcomes"""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []
        self.request_options = []

    def generate_content(self, prompt, generation_config=None, request_options=None):
        self.calls.append(generation_config)
        self.request_options.append(request_options)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return type("Response", (), {"text": outcome})()


class TestGetGeminiModel:
    """Tests for backend selection and model caching"""

    def test_api_key_backend_without_project(self, monkeypatch):
        """Test that no Cloud project selects the API-key backend"""
        monkeypatch.delenv("GOOGLE_CLOUD_PROJECT", raising=False)
        monkeypatch.setattr(gemini, "GOOGLE_CLOUD_PROJECT", None)
        monkeypatch.setattr(gemini, "_init_genai", lambda name: f"genai:{name}")

        assert gemini.get_gemini_model("gemini-x") == "genai:gemini-x"
        assert gemini.get_backend() == "genai"

    def test_vertex_failure_falls_back_to_api_key(self, monkeypatch):
        """Test that a Vertex AI init failure falls back to the API key"""
        monkeypatch.setenv("GOOGLE_CLOUD_PROJECT", "demo-project")

        def broken_vertex(name):
            raise RuntimeError("no credentials")

        monkeypatch.setattr(gemini, "_init_vertexai", broken_vertex)
        monkeypatch.setattr(gemini, "_init_genai", lambda name: f"genai:{name}")

        assert gemini.get_gemini_model("gemini-x") == "genai:gemini-x"

    def test_models_cached_per_name(self, monkeypatch):
        """Test that each model name is initialized once"""
        monkeypatch.setenv("GOOGLE_CLOUD_PROJECT", "demo-project")
        created = []

        def fake_vertex(name):
            created.append(name)
            return object()

        monkeypatch.setattr(gemini, "_init_vertexai", fake_vertex)

        first = gemini.get_gemini_model("a")
        assert gemini.get_gemini_model("a") is first
        gemini.get_gemini_model("b")
        assert created == ["a", "b"]
        assert gemini.get_backend() == "vertexai"

    def test_no_credentials_raises(self, monkeypatch):
        """Test that missing credentials raise GeminiInitializationError"""
        monkeypatch.delenv("GOOGLE_CLOUD_PROJECT", raising=False)
        monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
        monkeypatch.setattr(gemini, "GOOGLE_CLOUD_PROJECT", None)
        monkeypatch.setattr(gemini, "GOOGLE_API_KEY", None)

        with pytest.raises(gemini.GeminiInitializationError, match="GOOGLE_API_KEY"):
            gemini.get_gemini_model("gemini-x")


class TestCallLlm:
    """Tests for the retrying Gemini call"""

    def _call(self, monkeypatch, model, **kwargs):
        monkeypatch.setattr(retry, "get_gemini_model", lambda name: model)
        fast = retry.call_llm.retry_with(wait=wait_none())
        return fast("prompt", model_name="m1", counter_prefix="classifier", **kwargs)

    def test_returns_text_and_requests_json(self, monkeypatch):
        """Test that JSON output is requested by default"""
        model = FakeModel(['{"Gym": "RECOVERY"}'])

        assert self._call(monkeypatch, model) == '{"Gym": "RECOVERY"}'
        assert model.calls[0]["response_mime_type"] == "application/json"

    def test_plain_text_output(self, monkeypatch):
        """Test that json_output=False omits the JSON mime type"""
        model = FakeModel(["ok"])
        self._call(monkeypatch, model, json_output=False)
        assert "response_mime_type" not in model.calls[0]

    def test_rate_limit_is_retried(self, monkeypatch):
        """Test that ResourceExhausted is retried and counted"""
        model = FakeModel([ResourceExhausted("slow down"), "{}"])

        assert self._call(monkeypatch, model) == "{}"
        assert len(model.calls) == 2
        assert get_counter("classifier.rate_limited") == 1

    def test_timeout_gives_up_after_max_attempts(self, monkeypatch):
        """Test that repeated deadlines give up with TimeoutError"""
        model = FakeModel([DeadlineExceeded("late")] * 3)

        with pytest.raises(TimeoutError):
            self._call(monkeypatch, model)
        assert get_counter("classifier.timeout") == 3

    def test_other_errors_are_not_retried(self, monkeypatch):
        """Test that non-transient errors propagate on the first attempt"""
        model = FakeModel([InvalidArgument("bad prompt"), "{}"])

        with pytest.raises(InvalidArgument):
            self._call(monkeypatch, model)
        assert len(model.calls) == 1

    def test_api_key_backend_gets_request_timeout(self, monkeypatch):
        """The google-generativeai client receives the configured deadline"""
        monkeypatch.setattr(retry, "get_backend", lambda: "genai")
        model = FakeModel(["{}"])

        self._call(monkeypatch, model)
        assert model.request_options == [{"timeout": retry.LLM_TIMEOUT_SECONDS}]

    def test_vertex_backend_sends_no_request_options(self, monkeypatch):
        """Vertex AI generate_content takes no per-request timeout"""
        monkeypatch.setattr(retry, "get_backend", lambda: "vertexai")
        model = FakeModel(["{}"])

        self._call(monkeypatch, model)
        assert model.request_options == [None]
