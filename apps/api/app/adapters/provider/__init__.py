"""Render provider adapters."""

from .base import ProviderError, ProviderPrediction, RenderProvider
from .fake import FakeRenderProvider
from .replicate import ReplicateRenderProvider

__all__ = [
    "ProviderError",
    "ProviderPrediction",
    "RenderProvider",
    "FakeRenderProvider",
    "ReplicateRenderProvider",
]
