"""Embedding strategies and the service that fronts them."""

from .base import EmbeddingStrategy, StrategyDescriptor, l2_normalize
from .factory import EmbeddingStrategyFactory, StrategyStatus, default_builders
from .gemini import GeminiStrategy
from .hashing import SimpleHashStrategy, hash_embedding
from .ollama import OllamaStrategy
from .sbert import SentenceTransformerStrategy
from .service import EmbeddingService, EmbeddingServiceConfig, StrategyInfo

__all__ = [
    "EmbeddingService",
    "EmbeddingServiceConfig",
    "EmbeddingStrategy",
    "EmbeddingStrategyFactory",
    "GeminiStrategy",
    "OllamaStrategy",
    "SentenceTransformerStrategy",
    "SimpleHashStrategy",
    "StrategyDescriptor",
    "StrategyInfo",
    "StrategyStatus",
    "default_builders",
    "hash_embedding",
    "l2_normalize",
]
