"""Pytest configuration and fixtures."""

import json
import threading
import time
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient

from app.summarizer.config import ExtractionConfig
from app.summarizer.main import app
from app.summarizer.services.ai import DocumentExtractor
from app.summarizer.services.batch_service import BatchService, get_batch_service

# Minimal valid PDF structure
SAMPLE_PDF = b"""%PDF-1.4
1 0 obj
<< /Type /Catalog /Pages 2 0 R >>
endobj
2 0 obj
<< /Type /Pages /Kids [3 0 R] /Count 1 >>
endobj
3 0 obj
<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] >>
endobj
trailer
<< /Size 4 /Root 1 0 R >>
%%EOF"""


class ScriptedModelClient:
    """
    Stand-in for ModelClient that replays a fixed list of outcomes.

    Each outcome is either an exception instance (raised) or a reply
    (returned). Once the script runs out the last outcome repeats.
    """

    def __init__(self, outcomes: list[Any]):
        self.outcomes = list(outcomes)
        self.calls: list[tuple[Path, str]] = []
        self.credential_checks = 0

    def ensure_credentials(self) -> None:
        self.credential_checks += 1

    def complete(self, file_path: Path, prompt: str) -> Any:
        self.calls.append((Path(file_path), prompt))
        index = min(len(self.calls), len(self.outcomes)) - 1
        outcome = self.outcomes[index]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class ConcurrencyTrackingClient:
    """Stand-in that holds each remote call open briefly and records overlap."""

    def __init__(self, reply: str, hold_seconds: float = 0.2):
        self.reply = reply
        self.hold_seconds = hold_seconds
        self.calls = 0
        self.in_flight = 0
        self.max_in_flight = 0
        self._guard = threading.Lock()

    def ensure_credentials(self) -> None:
        pass

    def complete(self, file_path: Path, prompt: str) -> str:
        with self._guard:
            self.calls += 1
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            time.sleep(self.hold_seconds)
            return self.reply
        finally:
            with self._guard:
                self.in_flight -= 1


class RecordingSleep:
    """Replacement for time.sleep that records the requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def make_reply(**values: Any) -> str:
    """JSON reply text as the model would return it."""
    return json.dumps(values)


@pytest.fixture
def config() -> ExtractionConfig:
    """Extraction configuration with a dummy key and a 1 second base delay."""
    return ExtractionConfig(api_key="sk-test", base_delay_seconds=1.0)


@pytest.fixture
def full_reply() -> str:
    """Reply containing every default field."""
    return make_reply(
        title="Groundwater Trends in the Central Valley",
        author=["A. Rivera", "B. Chen"],
        organization="State Water Board",
        year=2021,
        state="California",
        key_findings="Groundwater levels declined. Recharge programs helped.",
    )


@pytest.fixture
def sample_pdf_bytes() -> bytes:
    """Create a minimal valid PDF for testing."""
    return SAMPLE_PDF


@pytest.fixture
def make_pdf(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing a PDF (or any bytes) into the test directory."""

    def _make(name: str = "paper.pdf", content: bytes = SAMPLE_PDF) -> Path:
        path = tmp_path / name
        path.write_bytes(content)
        return path

    return _make


@pytest.fixture
def sleeper() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def scripted_client() -> Callable[[list[Any]], ScriptedModelClient]:
    """Factory for scripted remote clients."""
    return ScriptedModelClient


@pytest.fixture
def tracking_client() -> type[ConcurrencyTrackingClient]:
    """Factory for clients that record how many calls overlap."""
    return ConcurrencyTrackingClient


@pytest.fixture
def make_batch_service(
    config: ExtractionConfig, sleeper: RecordingSleep
) -> Callable[[ScriptedModelClient], BatchService]:
    """Build a BatchService around a scripted client with recorded sleeps."""

    def _make(client: ScriptedModelClient) -> BatchService:
        extractor = DocumentExtractor(config, client=client, sleep=sleeper)
        return BatchService(extractor, sleep=sleeper)

    return _make


@pytest.fixture
def api_client() -> Generator[Callable[[ScriptedModelClient], TestClient], None, None]:
    """Create a test client whose batch service uses a scripted remote client."""
    clients: list[TestClient] = []

    def _make(model_client: ScriptedModelClient) -> TestClient:
        config = ExtractionConfig(api_key="sk-test", base_delay_seconds=0.0)
        extractor = DocumentExtractor(config, client=model_client, sleep=lambda _: None)
        service = BatchService(extractor, sleep=lambda _: None)
        app.dependency_overrides[get_batch_service] = lambda: service
        test_client = TestClient(app)
        test_client.__enter__()
        clients.append(test_client)
        return test_client

    yield _make

    for test_client in clients:
        test_client.__exit__(None, None, None)
    app.dependency_overrides.clear()


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI application."""
    with TestClient(app) as test_client:
        yield test_client
