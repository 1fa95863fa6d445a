"""
API Routes — The endpoints that tie everything together.

ENDPOINTS:
- POST /api/analyze          → Main endpoint: text → TrustState
- POST /api/analyze/stream   → Same, as Server-Sent Events with stage progress
- POST /api/rules/scan       → Red flags only (no AI, no network)
- POST /api/citations/verify → Citation records only

FLOW:
1. Frontend posts the text to /api/analyze/stream
2. Progress events drive the loading indicator
3. The final "result" event carries the TrustState the dashboard renders
"""

import asyncio
import json
import logging
from typing import AsyncIterator, Callable

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from app.models.schemas import (
    AnalyzeRequest,
    CitationRecord,
    RedFlagFinding,
    TextRequest,
    TrustState,
)
from app.services.pipeline import TrustPipeline
from app.services.trust.citation_verifier import extract_and_verify_citations
from app.services.trust.errors import TrustPipelineError
from app.services.trust.rule_engine import scan_red_flags

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["api"])

# Shown to the user when a fatal stage fails; details go to the log only
ANALYSIS_FAILED = "Analysis failed. Please try again."

PipelineFactory = Callable[[], TrustPipeline]


def get_pipeline_factory() -> PipelineFactory:
    """
    Dependency that returns a pipeline constructor.

    Each request builds (and closes) its own pipeline. A factory rather than
    a yield-dependency because the streaming endpoint outlives the handler.
    """
    return TrustPipeline


# =============================================================================
# MAIN ANALYSIS ENDPOINT
# =============================================================================

@router.post("/analyze", response_model=TrustState)
async def analyze(
    request: AnalyzeRequest,
    pipeline_factory: PipelineFactory = Depends(get_pipeline_factory),
) -> TrustState:
    """
    The main endpoint — score a block of text.

    Example:
        POST /api/analyze
        {"text": "Experts say the cure works 100% of the time.",
         "enable_web_grounding": true}

        Returns TrustState with claims, flags, citations, scores, explanation
    """
    logger.info(f"Analyzing text ({len(request.text)} chars)")

    pipeline = pipeline_factory()
    try:
        return await pipeline.run(
            text=request.text,
            enable_web_grounding=request.enable_web_grounding,
            enable_deep_thinking=request.enable_deep_thinking,
        )
    except TrustPipelineError as e:
        # No partial score, the caller gets a generic failure notice
        logger.error(f"Analysis failed: {e}")
        raise HTTPException(status_code=502, detail=ANALYSIS_FAILED) from e
    finally:
        await pipeline.close()


@router.post("/analyze/stream")
async def analyze_stream(
    request: AnalyzeRequest,
    pipeline_factory: PipelineFactory = Depends(get_pipeline_factory),
) -> StreamingResponse:
    """
    Score a block of text, streaming stage progress as Server-Sent Events.

    Events:
        {"type": "progress", "data": {"stage": "Extracting Claims..."}}
        {"type": "result",   "data": <TrustState>}
        {"type": "error",    "data": {"message": "Analysis failed. ..."}}
    """
    queue: asyncio.Queue = asyncio.Queue()

    async def run_pipeline(pipeline: TrustPipeline) -> None:
        try:
            state = await pipeline.run(
                text=request.text,
                enable_web_grounding=request.enable_web_grounding,
                enable_deep_thinking=request.enable_deep_thinking,
                on_progress=lambda stage: queue.put_nowait(("progress", {"stage": stage})),
            )
            queue.put_nowait(("result", state.model_dump(mode="json")))
        except TrustPipelineError as e:
            logger.error(f"Streamed analysis failed: {e}")
            queue.put_nowait(("error", {"message": ANALYSIS_FAILED}))
        except Exception:
            # The stream must always end with a terminal event
            logger.exception("Streamed analysis crashed")
            queue.put_nowait(("error", {"message": ANALYSIS_FAILED}))

    async def events() -> AsyncIterator[str]:
        pipeline = pipeline_factory()
        task = asyncio.create_task(run_pipeline(pipeline))
        try:
            while True:
                event_type, data = await queue.get()
                yield f"data: {json.dumps({'type': event_type, 'data': data})}\n\n"
                if event_type in ("result", "error"):
                    break
        finally:
            # Client went away mid-run: abandon the pending pipeline
            if not task.done():
                task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            await pipeline.close()

    return StreamingResponse(events(), media_type="text/event-stream")


# =============================================================================
# SINGLE-COMPONENT ENDPOINTS
# =============================================================================

@router.post("/rules/scan", response_model=list[RedFlagFinding])
async def scan_rules(request: TextRequest) -> list[RedFlagFinding]:
    """
    Run only the deterministic rule engine.

    Example:
        POST /api/rules/scan
        {"text": "Studies show it always works."}
    """
    return scan_red_flags(request.text)


@router.post("/citations/verify", response_model=list[CitationRecord])
async def verify_citations(request: TextRequest) -> list[CitationRecord]:
    """
    Extract and verify citations only.

    Example:
        POST /api/citations/verify
        {"text": "See 10.1038/nature12373 and Jones (2022)."}
    """
    return await extract_and_verify_citations(request.text)
