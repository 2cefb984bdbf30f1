"""
Metered Inference Routes

Transcription and enrichment endpoints. Both run through the Request
Orchestrator: admission before the provider call, accounting after it.
Rejections, provider failures and timeouts surface as structured errors
via the exception handlers in main.py.
"""

import base64
import binascii

from fastapi import APIRouter

from voxwarp.api.dependencies import OrchestratorDep, UserIdDep
from voxwarp.domain.usage import (
    EnrichRequest,
    EnrichResponse,
    TranscribeRequest,
    TranscribeResponse,
)
from voxwarp.infrastructure.exceptions import ValidationError


router = APIRouter()


def decode_audio(encoded: str) -> bytes:
    """Decode the base64 audio payload, accepting data URLs."""
    if encoded.startswith("data:") and "," in encoded:
        encoded = encoded.split(",", 1)[1]

    try:
        audio = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError("Audio must be base64 encoded", original_error=e)

    if not audio:
        raise ValidationError("No audio provided")

    return audio


@router.post("/transcribe", response_model=TranscribeResponse)
async def transcribe(
    request: TranscribeRequest,
    user_id: UserIdDep,
    orchestrator: OrchestratorDep,
):
    """
    Transcribe a recording and enrich it with the selected mode.

    Returns the transcript, the enriched text and the tokens charged.
    """
    audio = decode_audio(request.audio)
    outcome = await orchestrator.transcribe(
        user_id,
        audio,
        language=request.language,
        mode=request.mode,
    )
    return TranscribeResponse(
        result=outcome.result,
        enriched_content=outcome.enriched_content,
        tokens_used=outcome.tokens_used,
    )


@router.post("/enrich", response_model=EnrichResponse)
async def enrich(
    request: EnrichRequest,
    user_id: UserIdDep,
    orchestrator: OrchestratorDep,
):
    """Re-run enrichment on an existing transcript."""
    outcome = await orchestrator.enrich(
        user_id,
        request.transcript,
        mode=request.mode,
        language=request.language,
    )
    return EnrichResponse(result=outcome.result, tokens_used=outcome.tokens_used)
