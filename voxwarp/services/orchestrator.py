"""
Request Orchestrator

Per-request pipeline for metered work:
estimate -> admit -> inference -> record.

State machine:
    RECEIVED -> AUTHENTICATED -> ADMITTED -> INFERENCE_IN_FLIGHT
        -> RECORDED -> COMPLETED
with short circuits to REJECTED (admission) and FAILED (provider error
or timeout). The Usage Recorder is only ever reached from
INFERENCE_IN_FLIGHT after the provider succeeded, so failed work is
never charged.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import AsyncContextManager, Callable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from voxwarp.config.settings import Settings, get_settings
from voxwarp.domain.admission import Reject, admit
from voxwarp.domain.enrichment import build_mode_prompt
from voxwarp.domain.estimator import MeteringRates, WorkKind, estimate
from voxwarp.domain.interfaces import InferenceProvider, InferenceResult
from voxwarp.domain.usage import AccountQuota, UsageAction
from voxwarp.infrastructure.db.database import get_session_context
from voxwarp.infrastructure.db.repositories import QuotaRepository
from voxwarp.infrastructure.exceptions import (
    ProviderError,
    ProviderTimeoutError,
    ValidationError,
    VoxWarpError,
)
from voxwarp.services.usage_recorder import UsageRecorder


logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AsyncContextManager[AsyncSession]]


class RequestState(str, Enum):
    """Lifecycle of one metered request."""
    RECEIVED = "received"
    AUTHENTICATED = "authenticated"
    ADMITTED = "admitted"
    INFERENCE_IN_FLIGHT = "inference_in_flight"
    RECORDED = "recorded"
    COMPLETED = "completed"
    REJECTED = "rejected"
    FAILED = "failed"


@dataclass
class MeteredRequest:
    """One metered request and the states it has passed through."""
    user_id: str
    kind: WorkKind
    state: RequestState = RequestState.RECEIVED
    history: List[RequestState] = field(default_factory=lambda: [RequestState.RECEIVED])
    estimated_cost: Optional[int] = None
    charged_cost: Optional[int] = None
    recorded: bool = False

    def advance(self, state: RequestState) -> None:
        self.state = state
        self.history.append(state)
        logger.debug(f"{self.kind.value} request for {self.user_id}: {state.value}")


@dataclass
class MeteredOutcome:
    """What the caller gets back from a completed request."""
    result: str
    tokens_used: int
    enriched_content: str = ""
    request: Optional[MeteredRequest] = None


def charged_cost(estimated_cost: int, results: List[InferenceResult]) -> int:
    """
    Tokens to charge for completed work.

    Uses the provider's own figures when every call reported one,
    otherwise the pre-estimate.
    """
    if results and all(r.reported_cost is not None for r in results):
        return sum(r.reported_cost for r in results)
    return estimated_cost


class RequestOrchestrator:
    """Sequences admission, inference and recording for metered work."""

    def __init__(
        self,
        provider: InferenceProvider,
        recorder: UsageRecorder,
        session_factory: SessionFactory = get_session_context,
        settings: Optional[Settings] = None,
    ):
        self._provider = provider
        self._recorder = recorder
        self._session_factory = session_factory
        self._settings = settings or get_settings()
        self._rates = MeteringRates.from_settings(self._settings)
        self._timeout = self._settings.inference_timeout_seconds

    # =========================================================================
    # Operations
    # =========================================================================

    async def transcribe(
        self,
        user_id: str,
        audio: bytes,
        language: Optional[str] = None,
        mode: Optional[str] = None,
    ) -> MeteredOutcome:
        """
        Transcribe audio, then enrich the transcript with the chosen mode.

        A failed or timed-out enrichment pass does not fail the
        transcription; the response then carries an empty enriched_content.
        Each call gets its own timeout.
        """
        request = self._start(user_id, WorkKind.TRANSCRIPTION)
        if not audio:
            raise self._invalid(request, "Audio payload is empty")

        await self._admit(request, len(audio))

        transcript = await self._infer(request, self._provider.transcribe(audio, language))
        results = [transcript]

        enrichment = await self._enrich_transcript(request, transcript.text, mode, language)
        if enrichment:
            results.append(enrichment)

        tokens = await self._record(request, results, UsageAction.TRANSCRIPTION)
        return MeteredOutcome(
            result=transcript.text,
            enriched_content=enrichment.text if enrichment else "",
            tokens_used=tokens,
            request=request,
        )

    async def enrich(
        self,
        user_id: str,
        text: str,
        mode: Optional[str] = None,
        language: Optional[str] = None,
    ) -> MeteredOutcome:
        """Run a metered enrichment pass over an existing transcript."""
        request = self._start(user_id, WorkKind.ENRICHMENT)
        if not text or not text.strip():
            raise self._invalid(request, "No transcript provided")

        await self._admit(request, len(text))

        enrichment = await self._infer(
            request,
            self._provider.enrich(text, build_mode_prompt(mode), language),
        )

        tokens = await self._record(request, [enrichment], UsageAction.ENRICHMENT)
        return MeteredOutcome(
            result=enrichment.text,
            tokens_used=tokens,
            request=request,
        )

    # =========================================================================
    # Pipeline steps
    # =========================================================================

    def _start(self, user_id: str, kind: WorkKind) -> MeteredRequest:
        # Callers are authenticated by the API layer before reaching here
        request = MeteredRequest(user_id=user_id, kind=kind)
        request.advance(RequestState.AUTHENTICATED)
        return request

    def _invalid(self, request: MeteredRequest, message: str) -> ValidationError:
        request.advance(RequestState.REJECTED)
        return ValidationError(message)

    async def _load_quota(self, user_id: str) -> AccountQuota:
        async with self._session_factory() as session:
            return await QuotaRepository(session, self._settings).get_or_default(user_id)

    async def _admit(self, request: MeteredRequest, size_hint: int) -> None:
        try:
            request.estimated_cost = estimate(request.kind, size_hint, self._rates)
        except ValueError as e:
            raise self._invalid(request, str(e))

        quota = await self._load_quota(request.user_id)
        decision = admit(quota, request.estimated_cost)

        if isinstance(decision, Reject):
            request.advance(RequestState.REJECTED)
            logger.info(
                f"Rejected {request.kind.value} for {request.user_id}: "
                f"{decision.reason.value} (remaining={decision.remaining}, "
                f"required={request.estimated_cost})"
            )
            raise decision.to_error()

        request.advance(RequestState.ADMITTED)

    async def _infer(self, request: MeteredRequest, call):
        request.advance(RequestState.INFERENCE_IN_FLIGHT)
        try:
            return await asyncio.wait_for(call, timeout=self._timeout)
        except asyncio.TimeoutError as e:
            request.advance(RequestState.FAILED)
            logger.error(f"{request.kind.value} for {request.user_id} timed out after {self._timeout}s")
            raise ProviderTimeoutError(
                f"Inference timed out after {self._timeout:g} seconds",
                operation=request.kind.value,
                original_error=e,
            )
        except VoxWarpError:
            request.advance(RequestState.FAILED)
            raise
        except Exception as e:
            request.advance(RequestState.FAILED)
            raise ProviderError(
                f"Inference failed: {e}",
                operation=request.kind.value,
                original_error=e,
            )

    async def _enrich_transcript(
        self,
        request: MeteredRequest,
        text: str,
        mode: Optional[str],
        language: Optional[str],
    ) -> Optional[InferenceResult]:
        """Follow-up enrichment of a finished transcript; failures are non-fatal."""
        try:
            return await asyncio.wait_for(
                self._provider.enrich(text, build_mode_prompt(mode), language),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Enrichment after transcription for {request.user_id} "
                f"timed out after {self._timeout}s"
            )
        except ProviderError as e:
            logger.warning(f"Enrichment after transcription failed for {request.user_id}: {e}")
        return None

    async def _record(
        self,
        request: MeteredRequest,
        results: List[InferenceResult],
        action: UsageAction,
    ) -> int:
        request.charged_cost = charged_cost(request.estimated_cost, results)
        request.recorded = await self._recorder.record(
            request.user_id,
            request.charged_cost,
            action,
        )
        request.advance(RequestState.RECORDED)
        request.advance(RequestState.COMPLETED)
        return request.charged_cost
