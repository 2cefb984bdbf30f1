"""
Inference Provider Interface

Defines the contract the Request Orchestrator needs from the remote
speech-to-text / chat-completion backend.
Follows Dependency Inversion: the orchestrator depends on this ABC,
not on a concrete SDK.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass
class InferenceResult:
    """
    Output of one provider call.

    reported_cost is the provider's own token count for the call, in
    VoxWarp tokens, when the provider can report it; None otherwise.
    """
    text: str
    reported_cost: Optional[int] = None


class InferenceProvider(ABC):
    """Remote inference backend used for metered work."""

    @abstractmethod
    async def transcribe(
        self,
        audio: bytes,
        language_hint: Optional[str] = None,
    ) -> InferenceResult:
        """Transcribe an audio payload to text."""
        pass

    @abstractmethod
    async def enrich(
        self,
        text: str,
        mode_prompt: str,
        language_hint: Optional[str] = None,
    ) -> InferenceResult:
        """Run an LLM enrichment pass over text."""
        pass
