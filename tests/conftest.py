"""Pytest configuration and shared fixtures."""

import json
from types import SimpleNamespace
from typing import Dict
from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient

from app.models.document_model import SourceFile
from app.models.field_schema import empty_record
from app.services.document_queue import DocumentQueue
from app.services.extraction_client import ExtractionClient


@pytest.fixture
def sample_record() -> Dict[str, str]:
    """A complete record that passes every validation rule.

    Returns:
        Dict[str, str]: Extraction record with all 29 fields
    """
    record = empty_record()
    record.update({
        "Proposal Received Date": "28-03-2024",
        "Proposal No": "PR-55821",
        "Proposer Name": "Ravi Kumar",
        "Pin Code": "560034",
        "Total No of Lives": "1",
        "Business Type": "New",
        "Insurance Company": "ACME General Insurance",
        "Product Type": "Motor",
        "Product Name": "Private Car Package",
        "Cover Type": "Comprehensive",
        "Tenure (In Months)": "12",
        "Payment Mode": "Online",
        "Received Amount": "11800",
        "Basic Premium": "10000",
        "Taxes": "1800",
        "Final Premium": "11800",
        "Email": "ravi@example.com",
        "Mobile No": "9876543210",
        "Policy No": "MOT/2024/000123",
        "Policy Start Date": "01-04-2024",
        "Policy End Date": "31-03-2025",
        "Agent / Broker Code": "BRK-77",
        "Agent / Broker Name": "Safe Hands Brokers",
        "OD Premium": "7000",
        "Liability Premium": "3000",
        "Vehicle Reg. No": "KA01AB1234",
        "Vehicle Make": "Maruti",
    })
    return record


@pytest.fixture
def make_source():
    """Factory for in-memory source files."""
    def _make(filename: str = "policy.pdf", mime_type: str = "application/pdf", content: bytes = b"%PDF-1.4 test"):
        return SourceFile(content=content, mime_type=mime_type, filename=filename, size=len(content), page_count=1)
    return _make


@pytest.fixture
def mock_extraction_client(sample_record) -> Mock:
    """Extraction client whose extract() returns the sample record.

    Returns:
        Mock: Mocked ExtractionClient
    """
    client = Mock(spec=ExtractionClient)
    client.extract = AsyncMock(side_effect=lambda *args, **kwargs: dict(sample_record))
    return client


@pytest.fixture
def queue(mock_extraction_client) -> DocumentQueue:
    return DocumentQueue(extraction_client=mock_extraction_client, baseline_confidence=98.0)


def make_completion(content, refusal=None):
    """Build an object shaped like a chat completion response."""
    if not isinstance(content, str) and content is not None:
        content = json.dumps(content)
    message = SimpleNamespace(content=content, refusal=refusal)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


@pytest.fixture
def mock_openai_client() -> Mock:
    client = Mock()
    client.chat.completions.create = AsyncMock()
    return client


@pytest.fixture
def test_client(queue):
    """FastAPI test client bound to an isolated queue.

    Returns:
        TestClient: FastAPI test client instance
    """
    from main import app
    from app.api.routes import get_document_queue

    app.dependency_overrides[get_document_queue] = lambda: queue
    yield TestClient(app)
    app.dependency_overrides = {}
