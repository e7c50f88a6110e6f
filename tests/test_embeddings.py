# tests/test_embeddings.py
# Never calls the real provider: google.generativeai.embed_content is monkeypatched.
import types

import pytest

from carshopper import embeddings
from carshopper.embeddings import EmbeddingClient, describe_vehicle
from carshopper.errors import EmbeddingUnavailable

from conftest import run


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(embeddings.genai, "configure", lambda **kw: None)
    return EmbeddingClient(api_key="test-key", dimension=4)


def _provider(monkeypatch, result=None, error=None):
    calls = []

    def fake_embed_content(**kwargs):
        calls.append(kwargs)
        if error is not None:
            raise error
        return result

    monkeypatch.setattr(embeddings.genai, "embed_content", fake_embed_content)
    return calls


def test_embed_returns_vector(client, monkeypatch):
    calls = _provider(monkeypatch, result={"embedding": [0.1, 0.2, 0.3, 0.4]})
    assert run(client.embed("reliable sedan")) == [0.1, 0.2, 0.3, 0.4]
    assert calls[0]["content"] == "reliable sedan"
    assert calls[0]["model"] == client.model


@pytest.mark.parametrize("result", [
    {"embedding": [0.1, 0.2]},
    {"embedding": ["a", "b", "c", "d"]},
    {"values": [0.1, 0.2, 0.3, 0.4]},
    None,
])
def test_malformed_response_is_unavailable(client, monkeypatch, result):
    _provider(monkeypatch, result=result)
    with pytest.raises(EmbeddingUnavailable):
        run(client.embed("sedan"))


def test_provider_error_is_unavailable(client, monkeypatch):
    _provider(monkeypatch, error=RuntimeError("429 quota exceeded"))
    with pytest.raises(EmbeddingUnavailable) as exc:
        run(client.embed("sedan"))
    assert "quota" in str(exc.value)


def test_empty_text_is_rejected_without_calling_provider(client, monkeypatch):
    calls = _provider(monkeypatch, result={"embedding": [0.0] * 4})
    with pytest.raises(EmbeddingUnavailable):
        run(client.embed("   "))
    assert calls == []


def test_missing_api_key_fails_at_first_use(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    client = EmbeddingClient.from_env()
    with pytest.raises(EmbeddingUnavailable):
        client.embed_sync("sedan")


def test_describe_vehicle():
    car = types.SimpleNamespace(year=2017, make="Honda", model="Civic", title="Clean Civic",
                                price=12000.0, mileage="50,000 km", body_type=None)
    assert describe_vehicle(car) == "For Sale: 2017 Honda Civic Clean Civic. Price: $12,000. Mileage: 50,000 km."
