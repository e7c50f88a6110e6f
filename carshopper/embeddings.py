# carshopper/embeddings.py
"""Text embedding adapter over the Gemini embedding API.

`EmbeddingClient.embed` turns one text into a fixed-length vector or raises
`EmbeddingUnavailable`. It never pads, truncates or substitutes a zero vector:
callers take the error as the signal to fall back to structured search.
"""
import os
import asyncio
from typing import List, Optional
from dotenv import load_dotenv
import google.generativeai as genai
from .errors import EmbeddingUnavailable
from .utils import logger

load_dotenv()

EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "models/text-embedding-004")
EMBEDDING_DIM = int(os.getenv("EMBEDDING_DIM", "768"))
EMBEDDING_TIMEOUT_SECONDS = float(os.getenv("EMBEDDING_TIMEOUT_SECONDS", "10"))


class EmbeddingClient:
    def __init__(self, api_key: Optional[str], model: str = EMBEDDING_MODEL,
                 dimension: int = EMBEDDING_DIM, timeout: float = EMBEDDING_TIMEOUT_SECONDS):
        self.api_key = api_key
        self.model = model
        self.dimension = dimension
        self.timeout = timeout
        self._configured = False

    @classmethod
    def from_env(cls) -> "EmbeddingClient":
        # a missing key only fails at first use so the app can start without one
        return cls(api_key=os.getenv("GEMINI_API_KEY"))

    def _configure(self):
        if self._configured:
            return
        if not self.api_key:
            raise EmbeddingUnavailable("GEMINI_API_KEY not set")
        genai.configure(api_key=self.api_key)
        self._configured = True

    def embed_sync(self, text: str, task_type: str = "retrieval_query") -> List[float]:
        if not isinstance(text, str) or not text.strip():
            raise EmbeddingUnavailable("cannot embed empty text")
        self._configure()
        try:
            result = genai.embed_content(
                model=self.model,
                content=text,
                task_type=task_type,
                request_options={"timeout": self.timeout},
            )
        except Exception as e:
            logger.warning("Embedding provider call failed: %s", e)
            raise EmbeddingUnavailable(str(e)) from e
        return self._validate(result)

    async def embed(self, text: str, task_type: str = "retrieval_query") -> List[float]:
        return await asyncio.to_thread(self.embed_sync, text, task_type)

    def _validate(self, result) -> List[float]:
        values = result.get("embedding") if isinstance(result, dict) else getattr(result, "embedding", None)
        if values is None:
            raise EmbeddingUnavailable("provider response has no embedding")
        try:
            vector = [float(v) for v in values]
        except (TypeError, ValueError) as e:
            raise EmbeddingUnavailable("provider returned non-numeric embedding") from e
        if len(vector) != self.dimension:
            raise EmbeddingUnavailable(
                f"expected {self.dimension} dimensions, got {len(vector)}")
        return vector


def describe_vehicle(vehicle) -> str:
    """Listing text that gets embedded for a catalog vehicle."""
    name = " ".join(str(p) for p in (vehicle.year, vehicle.make, vehicle.model, vehicle.title) if p)
    parts = [f"For Sale: {name}."]
    if vehicle.price is not None:
        parts.append(f"Price: ${vehicle.price:,.0f}.")
    if vehicle.mileage:
        parts.append(f"Mileage: {vehicle.mileage}.")
    if getattr(vehicle, "body_type", None):
        parts.append(f"Body: {vehicle.body_type}.")
    return " ".join(parts)
