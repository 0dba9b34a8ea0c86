"""
REST endpoints for the confusion session, calibration and rephrasing.
"""
import logging
from fastapi import APIRouter, HTTPException

from confusense.config import Settings
from confusense.document import StudyDocument
from confusense.live import LiveConfusionSession
from confusense.models import (
    CalibrationStatus,
    DocumentIn,
    DocumentOut,
    FrameIn,
    FrameResult,
    RephraseRequest,
    SessionStatus,
)
from confusense.pipeline import ConfusionPipeline, SessionNotActiveError


router = APIRouter()
settings = Settings()
document = StudyDocument()
pipeline = ConfusionPipeline(settings, document=document)
live_session = {"capture": None}
logger = logging.getLogger(__name__)


def _capturing() -> bool:
    cap = live_session["capture"]
    return cap is not None and cap.running


@router.post("/session/start")
async def session_start(capture: bool = False):
    """
    Start a capture session.

    Args:
        capture: also open the local camera and score it every tick.
                 Without it, frames are pushed through POST /frames.
    """
    if pipeline.running:
        return {"status": "already_running"}
    if capture:
        cap = LiveConfusionSession(settings, pipeline)
        live_session["capture"] = cap
        cap.start()
    else:
        pipeline.start()
    logger.debug(f"[api] session started capture={capture}")
    return {"status": "started"}


@router.post("/session/stop")
async def session_stop():
    if not pipeline.running:
        return {"status": "not_running"}
    cap = live_session["capture"]
    if cap is not None:
        cap.stop()
        live_session["capture"] = None
    pipeline.stop()
    return {"status": "stopped"}


@router.get("/session/status", response_model=SessionStatus)
async def session_status():
    return pipeline.status(capturing=_capturing())


@router.post("/frames", response_model=FrameResult)
async def submit_frame(frame: FrameIn):
    """
    Score one frame of face-mesh landmarks (pixel coordinates, z ignored).
    A null or empty landmark list means no face was detected.
    """
    if not pipeline.running:
        raise HTTPException(status_code=409, detail="No active session")
    return pipeline.process_frame(frame.landmarks, now=frame.timestamp)


@router.get("/calibration", response_model=CalibrationStatus)
async def calibration_status():
    return pipeline.calibration_status()


@router.post("/calibration/start", response_model=CalibrationStatus)
async def calibration_start():
    try:
        return pipeline.start_calibration()
    except SessionNotActiveError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.post("/calibration/step")
async def calibration_step():
    advanced = pipeline.complete_calibration_step()
    return {"advanced": advanced, "calibration": pipeline.calibration_status().model_dump()}


@router.post("/calibration/reset", response_model=CalibrationStatus)
async def calibration_reset():
    pipeline.reset_calibration()
    return pipeline.calibration_status()


@router.post("/rephrase")
def rephrase(req: RephraseRequest):
    """
    Rephrase text through the first configured provider.
    Provider failures come back as a readable message, not an HTTP error.
    """
    result = pipeline.rephrase(req)
    return {"text": result.text, "ok": result.ok, "provider": result.provider}


def _document_out() -> DocumentOut:
    return DocumentOut(content=document.content, suggestions=document.suggestions, rendered=document.render())


@router.get("/document", response_model=DocumentOut)
async def get_document():
    return _document_out()


@router.put("/document", response_model=DocumentOut)
async def put_document(body: DocumentIn):
    document.set_content(body.content)
    return _document_out()


@router.delete("/document/suggestions", response_model=DocumentOut)
async def clear_suggestions():
    document.clear_suggestions()
    return _document_out()
