"""Tests for single-document extraction, retries and the OpenAI client wrapper."""

import base64
import json
from types import SimpleNamespace

import httpx
import openai
import pytest

from app.summarizer.config import ExtractionConfig
from app.summarizer.exceptions import ConfigurationError, NotFoundError
from app.summarizer.models import NOT_AVAILABLE, ErrorCategory
from app.summarizer.services.ai import DocumentExtractor, ModelClient, backoff_delay


def make_reply(**values) -> str:
    return json.dumps(values)


REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


class TestBackoffDelay:
    """Tests for the exponential backoff schedule."""

    def test_doubles_each_attempt(self):
        assert [backoff_delay(n, 2.0) for n in (1, 2, 3, 4)] == [2.0, 4.0, 8.0, 16.0]

    def test_zero_base(self):
        assert backoff_delay(3, 0.0) == 0.0


class TestSuccessfulExtraction:
    """Tests for documents that extract on the first attempt."""

    def test_record_has_filename_then_fields(
        self, config, scripted_client, sleeper, make_pdf, full_reply
    ):
        """Test the shape of a successful record."""
        client = scripted_client([full_reply])
        extractor = DocumentExtractor(config, client=client, sleep=sleeper)

        outcome = extractor.extract(make_pdf("groundwater.pdf"), ["title", "year", "state"])

        assert outcome.success
        assert outcome.attempts == 1
        assert outcome.error_log == []
        assert outcome.record == {
            "filename": "groundwater.pdf",
            "title": "Groundwater Trends in the Central Valley",
            "year": "2021",
            "state": "California",
        }
        assert list(outcome.record) == ["filename", "title", "year", "state"]
        assert sleeper.delays == []

    def test_defaults_used_when_fields_omitted(
        self, config, scripted_client, sleeper, make_pdf, full_reply
    ):
        """Test that omitting fields extracts every default field."""
        client = scripted_client([full_reply])
        extractor = DocumentExtractor(config, client=client, sleep=sleeper)

        outcome = extractor.extract(make_pdf())

        assert list(outcome.record) == ["filename", *config.default_fields]
        assert outcome.record["author"] == "A. Rivera; B. Chen"

    def test_prompt_sent_with_document(self, config, scripted_client, sleeper, make_pdf):
        """Test that the prompt for the requested fields reaches the client."""
        client = scripted_client([make_reply(title="T")])
        extractor = DocumentExtractor(config, client=client, sleep=sleeper)
        path = make_pdf()

        extractor.extract(path, ["title"])

        assert len(client.calls) == 1
        sent_path, prompt = client.calls[0]
        assert sent_path == path
        assert "- title: " in prompt
        assert "key_findings" not in prompt

    def test_missing_fields_filled_with_warning(
        self, config, scripted_client, sleeper, make_pdf
    ):
        """Test that partial replies still succeed."""
        client = scripted_client([make_reply(title="Only a title")])
        extractor = DocumentExtractor(config, client=client, sleep=sleeper)

        outcome = extractor.extract(make_pdf(), ["title", "year"])

        assert outcome.success
        assert outcome.record["year"] == NOT_AVAILABLE
        assert any("year" in warning for warning in outcome.warnings)


class TestRetries:
    """Tests for the retry loop."""

    def test_two_timeouts_then_success(
        self, config, scripted_client, sleeper, make_pdf, full_reply
    ):
        """Test recovery after two transient failures."""
        client = scripted_client(
            [TimeoutError("Request timed out"), TimeoutError("Request timed out"), full_reply]
        )
        extractor = DocumentExtractor(config, client=client, sleep=sleeper)

        outcome = extractor.extract(make_pdf(), max_attempts=3)

        assert outcome.success
        assert outcome.attempts == 3
        assert [e.error_type for e in outcome.error_log] == [ErrorCategory.TIMEOUT] * 2
        assert [e.attempt_number for e in outcome.error_log] == [1, 2]
        assert sleeper.delays == [1.0, 2.0]
        assert len(client.calls) == 3

    def test_attempts_exhausted(self, config, scripted_client, sleeper, make_pdf):
        """Test that a persistent transient error stops at the attempt limit."""
        error = openai.APIStatusError(
            "Rate limit reached",
            response=httpx.Response(429, request=REQUEST),
            body=None,
        )
        client = scripted_client([error])
        extractor = DocumentExtractor(config, client=client, sleep=sleeper)

        outcome = extractor.extract(make_pdf(), max_attempts=3)

        assert not outcome.success
        assert outcome.record is None
        assert outcome.attempts == 3
        assert len(outcome.error_log) == 3
        assert {e.error_type for e in outcome.error_log} == {ErrorCategory.RATE_LIMIT}
        # No wait after the final attempt
        assert sleeper.delays == [1.0, 2.0]

    def test_permanent_error_not_retried(self, config, scripted_client, sleeper, make_pdf):
        """Test that an unclassified error fails after one attempt."""
        client = scripted_client([ValueError("Invalid request")])
        extractor = DocumentExtractor(config, client=client, sleep=sleeper)

        outcome = extractor.extract(make_pdf(), max_attempts=3)

        assert not outcome.success
        assert outcome.attempts == 1
        assert len(outcome.error_log) == 1
        assert outcome.error_log[0].error_type == ErrorCategory.UNKNOWN
        assert outcome.error_log[0].error_message == "Invalid request"
        assert sleeper.delays == []
        assert len(client.calls) == 1

    def test_authentication_error_not_retried(self, config, scripted_client, sleeper, make_pdf):
        """Test that a 401 from the API is permanent."""
        error = openai.APIStatusError(
            "Incorrect API key provided",
            response=httpx.Response(401, request=REQUEST),
            body=None,
        )
        client = scripted_client([error])
        extractor = DocumentExtractor(config, client=client, sleep=sleeper)

        outcome = extractor.extract(make_pdf())

        assert outcome.attempts == 1
        assert outcome.error_log[0].error_type == ErrorCategory.AUTHENTICATION

    def test_malformed_reply_retried(self, config, scripted_client, sleeper, make_pdf, full_reply):
        """Test that an undecodable reply is re-requested by default."""
        client = scripted_client(["I could not read the document.", full_reply])
        extractor = DocumentExtractor(config, client=client, sleep=sleeper)

        outcome = extractor.extract(make_pdf())

        assert outcome.success
        assert outcome.attempts == 2
        assert outcome.error_log[0].error_type == ErrorCategory.MALFORMED_RESPONSE
        assert sleeper.delays == [1.0]

    def test_malformed_reply_permanent_when_disabled(
        self, config, scripted_client, sleeper, make_pdf
    ):
        """Test that malformed replies fail immediately when retries are disabled."""
        strict = config.model_copy(update={"retry_malformed_responses": False})
        client = scripted_client(["not json"])
        extractor = DocumentExtractor(strict, client=client, sleep=sleeper)

        outcome = extractor.extract(make_pdf())

        assert not outcome.success
        assert outcome.attempts == 1

    def test_single_attempt_never_sleeps(self, config, scripted_client, sleeper, make_pdf):
        """Test max_attempts=1 with a transient error."""
        client = scripted_client([TimeoutError("timed out")])
        extractor = DocumentExtractor(config, client=client, sleep=sleeper)

        outcome = extractor.extract(make_pdf(), max_attempts=1)

        assert not outcome.success
        assert len(outcome.error_log) == 1
        assert sleeper.delays == []

    def test_configured_attempt_limit_used_by_default(
        self, scripted_client, sleeper, make_pdf
    ):
        """Test that max_attempts falls back to the configuration."""
        config = ExtractionConfig(api_key="sk-test", max_attempts=2, base_delay_seconds=0.5)
        client = scripted_client([TimeoutError("timed out")])
        extractor = DocumentExtractor(config, client=client, sleep=sleeper)

        outcome = extractor.extract(make_pdf())

        assert outcome.attempts == 2
        assert sleeper.delays == [0.5]


class TestPreconditions:
    """Tests for errors raised before any remote call."""

    def test_missing_file(self, config, scripted_client, sleeper, tmp_path):
        client = scripted_client(["{}"])
        extractor = DocumentExtractor(config, client=client, sleep=sleeper)

        with pytest.raises(NotFoundError):
            extractor.extract(tmp_path / "missing.pdf")
        assert client.calls == []

    def test_invalid_field(self, config, scripted_client, sleeper, make_pdf):
        client = scripted_client(["{}"])
        extractor = DocumentExtractor(config, client=client, sleep=sleeper)

        with pytest.raises(ConfigurationError) as exc_info:
            extractor.extract(make_pdf(), ["title", "journal"])
        assert exc_info.value.invalid_fields == ["journal"]
        assert client.calls == []

    def test_zero_attempts_rejected(self, config, scripted_client, sleeper, make_pdf):
        client = scripted_client(["{}"])
        extractor = DocumentExtractor(config, client=client, sleep=sleeper)

        with pytest.raises(ConfigurationError):
            extractor.extract(make_pdf(), max_attempts=0)
        assert client.calls == []

    def test_missing_api_key(self, sleeper, make_pdf):
        """Test that the real client refuses to start without a key."""
        extractor = DocumentExtractor(ExtractionConfig(api_key=None), sleep=sleeper)

        with pytest.raises(ConfigurationError, match="API key"):
            extractor.extract(make_pdf())

    def test_non_pdf_extension_only_warns(self, config, scripted_client, sleeper, make_pdf):
        client = scripted_client([make_reply(title="T")])
        extractor = DocumentExtractor(config, client=client, sleep=sleeper)

        outcome = extractor.extract(make_pdf("notes.txt"), ["title"])

        assert outcome.success
        assert any(".pdf extension" in warning for warning in outcome.warnings)


class TestModelClient:
    """Tests for the OpenAI request built by ModelClient."""

    @pytest.fixture
    def fake_openai(self):
        """Object with the chat.completions.create shape that records its kwargs."""
        calls = []

        def create(**kwargs):
            calls.append(kwargs)
            message = SimpleNamespace(content='{"title": "T"}')
            return SimpleNamespace(choices=[SimpleNamespace(message=message)])

        fake = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
        fake.calls = calls
        return fake

    def test_request_shape(self, config, fake_openai, make_pdf, sample_pdf_bytes):
        """Test that the PDF is attached as a base64 file part next to the prompt."""
        client = ModelClient(config, openai_client=fake_openai)
        path = make_pdf("study.pdf")

        reply = client.complete(path, "Extract the title")

        kwargs = fake_openai.calls[0]
        assert kwargs["model"] == config.model
        assert kwargs["temperature"] == config.temperature
        assert kwargs["max_completion_tokens"] == config.max_tokens
        assert kwargs["response_format"] == {"type": "json_object"}

        system, user = kwargs["messages"]
        assert system == {"role": "system", "content": config.system_prompt}
        file_part, text_part = user["content"]
        assert file_part["type"] == "file"
        assert file_part["file"]["filename"] == "study.pdf"
        encoded = base64.b64encode(sample_pdf_bytes).decode("utf-8")
        assert file_part["file"]["file_data"] == f"data:application/pdf;base64,{encoded}"
        assert text_part == {"type": "text", "text": "Extract the title"}

        assert reply.choices[0].message.content == '{"title": "T"}'

    def test_end_to_end_with_sdk_shaped_reply(self, config, fake_openai, sleeper, make_pdf):
        """Test that the extractor parses the SDK completion object."""
        client = ModelClient(config, openai_client=fake_openai)
        extractor = DocumentExtractor(config, client=client, sleep=sleeper)

        outcome = extractor.extract(make_pdf(), ["title"])

        assert outcome.record == {"filename": "paper.pdf", "title": "T"}

    def test_sdk_retries_disabled(self, config):
        """Test that the lazily built SDK client does not retry on its own."""
        client = ModelClient(config)
        assert client.client.max_retries == 0

    def test_missing_key_raises(self):
        client = ModelClient(ExtractionConfig(api_key=None))
        with pytest.raises(ConfigurationError):
            client.ensure_credentials()
