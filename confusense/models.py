"""
Pydantic data models for the scoring pipeline and API IO.
"""
from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field
from typing import Dict, List, Optional, Literal


class FeatureReport(BaseModel):
    """Geometric measurements of one frame plus the heuristic score they add up to."""
    model_config = ConfigDict(frozen=True)

    brow_distance: Optional[float] = None
    brow_asymmetry: Optional[float] = None
    left_brow_angle: Optional[float] = None
    right_brow_angle: Optional[float] = None

    eye_height: Optional[float] = None
    eye_asymmetry: Optional[float] = None
    eye_width_ratio: Optional[float] = None

    mouth_height: Optional[float] = None
    mouth_offset: Optional[float] = None
    mouth_tilt: Optional[float] = None
    mouth_width: Optional[float] = None

    head_tilt_x: Optional[float] = None
    head_tilt_y: Optional[float] = None
    face_ratio: Optional[float] = None

    face_length: Optional[float] = None

    group_scores: Dict[str, float] = Field(default_factory=dict)
    failed_groups: List[str] = Field(default_factory=list)
    score: float = 0.0
    confidence: float = 1.0


class ScoreSample(BaseModel):
    score: float
    time: float
    confidence: float


class CalibrationBaseline(BaseModel):
    neutral: float = 0.0
    confused: float = 0.0
    step: Optional[int] = None

    def persisted(self) -> dict:
        return {"neutral": self.neutral, "confused": self.confused}


class CalibrationStatus(BaseModel):
    phase: Literal["idle", "collecting_neutral", "collecting_confused", "complete"]
    step: int
    samples: int
    required_samples: int
    baseline: Optional[CalibrationBaseline] = None


class ConfusionState(BaseModel):
    level: float = 0.0
    confused: bool = False
    last_trigger_time: Optional[float] = None


class FrameResult(BaseModel):
    ts: float
    face_detected: bool
    raw_score: float = 0.0
    confidence: float = 0.0
    smoothed_score: float = 0.0
    level: float = 0.0
    confused: bool = False
    debounce_armed: bool = False
    samples: int = 0
    failed_groups: List[str] = Field(default_factory=list)


class SessionStatus(BaseModel):
    running: bool
    capturing: bool = False
    started_at: float | None = None
    state: ConfusionState
    label: Literal["Confused", "Clear"]
    band: Literal["low", "medium", "high"]
    samples: int = 0
    calibration: CalibrationStatus
    last_frame: FrameResult | None = None


# rephrase models


class RephraseRequest(BaseModel):
    event_type: str = "facial-confusion"
    content: str
    confusion_level: float = 0.0


class RephraseResult(BaseModel):
    text: str
    ok: bool
    provider: Optional[str] = None


class Suggestion(BaseModel):
    time: float
    text: str
    provider: Optional[str] = None


# API IO


class FrameIn(BaseModel):
    landmarks: Optional[List[Optional[List[float]]]] = None
    timestamp: Optional[float] = None


class DocumentIn(BaseModel):
    content: str


class DocumentOut(BaseModel):
    content: str
    suggestions: List[Suggestion] = Field(default_factory=list)
    rendered: str
