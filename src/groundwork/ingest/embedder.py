"""Embedding provider seam over ``litellm.embedding()``.

Chunk text is embedded in batches bounded by the provider's per-call item
limit. Provider errors propagate unchanged; the caller decides what a
failed embedding means for the owning source.
"""

from __future__ import annotations

import math
import os

import litellm

# Disable LiteLLM verbose logging unless explicitly enabled
litellm.suppress_debug_info = True

DEFAULT_MODEL = "openai/text-embedding-3-small"
DEFAULT_BATCH_SIZE = 100

_PROVIDER_ENV: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "azure": "AZURE_API_KEY",
    "cohere": "COHERE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "voyage": "VOYAGE_API_KEY",
    "ollama": None,  # Local, no key required
}


def provider_of(model: str) -> str:
    return model.split("/")[0].lower() if "/" in model else "openai"


def api_key_env(model: str) -> str | None:
    """Name of the env var holding the API key for *model*, or None if none is needed."""
    return _PROVIDER_ENV.get(provider_of(model))


def validate_api_key(model: str) -> None:
    """Check that the API key env var required by *model*'s provider is set.

    Raises:
        EnvironmentError: If the required key is missing from the environment.
    """
    provider = provider_of(model)
    env_var = api_key_env(model)
    if env_var is None:
        return
    if not os.getenv(env_var):
        raise EnvironmentError(
            f"API key not found for provider '{provider}'. "
            f"Set the {env_var} environment variable."
        )


class Embedder:
    """Turn text into dense vectors with one embedding model.

    Args:
        model:      LiteLLM embedding model string (provider/model format).
        batch_size: Maximum number of inputs per provider call.
        dimensions: Requested vector size, passed through when set.
    """

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        batch_size: int = DEFAULT_BATCH_SIZE,
        dimensions: int | None = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self.model = model
        self.batch_size = batch_size
        self.dimensions = dimensions

    @classmethod
    def from_config(cls, cfg) -> Embedder:
        """Build an embedder from an ``EmbeddingCfg`` section."""
        return cls(model=cfg.model, batch_size=cfg.batch_size, dimensions=cfg.dimensions)

    def embed(self, text: str) -> list[float]:
        return self._call([text])[0]

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed *texts* in order, ``batch_size`` inputs per provider call."""
        vectors: list[list[float]] = []
        for start in range(0, len(texts), self.batch_size):
            vectors.extend(self._call(texts[start:start + self.batch_size]))
        return vectors

    def embed_query(self, text: str) -> list[float]:
        """Embed a search query. Identical to :meth:`embed` for now."""
        return self.embed(text)

    def _call(self, inputs: list[str]) -> list[list[float]]:
        kwargs: dict = {"model": self.model, "input": inputs}
        if self.dimensions is not None and self.model.startswith("openai/text-embedding-3"):
            kwargs["dimensions"] = self.dimensions
        response = litellm.embedding(**kwargs)
        # Providers may return items out of order; each carries its input index.
        items = sorted(response.data, key=lambda item: item["index"])
        return [item["embedding"] for item in items]


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Cosine similarity of two equal-length vectors; 0.0 if either is all zeros.

    Raises:
        ValueError: If the vectors differ in length.
    """
    if len(a) != len(b):
        raise ValueError("Vectors must have the same dimensions")
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    if norm == 0:
        return 0.0
    return dot / norm
