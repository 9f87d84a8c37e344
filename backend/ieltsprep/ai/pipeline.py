"""
IELTS Prep - Evaluation Pipeline
Transcription -> local analysis -> rubric grading -> metric merge.

Every stage can fail; failures come back as a Failed outcome instead of an
exception so a grading problem never blocks the candidate's mock test.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Optional, Union

from ieltsprep.ai.core.telemetry import stage_span
from ieltsprep.ai.graders import SpeakingGrader, WritingGrader
from ieltsprep.ai.speech_analysis import SpeechAnalysis, analyze_speech
from ieltsprep.ai.transcription import WhisperTranscriber, get_transcriber
from ieltsprep.core.config import settings
from ieltsprep.core.errors import ErrorCode, EvaluationError, TranscriptionFailed
from ieltsprep.models.mock_test import EvaluationStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Scored:
    band: float
    rubric_breakdown: Dict[str, Any]
    metrics: Dict[str, Any]
    feedback: Optional[str] = None
    transcript: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    status: ClassVar[EvaluationStatus] = EvaluationStatus.SCORED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "band": self.band,
            "criteria": self.rubric_breakdown,
            "metrics": self.metrics,
            "feedback": self.feedback,
            **self.details,
        }


@dataclass(frozen=True)
class Pending:
    transcript: Optional[str] = None

    status: ClassVar[EvaluationStatus] = EvaluationStatus.PENDING

    def to_dict(self) -> Dict[str, Any]:
        return {"status": self.status.value}


@dataclass(frozen=True)
class Failed:
    reason: str
    code: str = ErrorCode.UNKNOWN.value
    transcript: Optional[str] = None

    status: ClassVar[EvaluationStatus] = EvaluationStatus.FAILED

    def to_dict(self) -> Dict[str, Any]:
        return {"status": self.status.value, "reason": self.reason, "code": self.code}


EvaluationOutcome = Union[Scored, Pending, Failed]


def merge_metrics(ai_metrics: Dict[str, Any], analysis: SpeechAnalysis) -> Dict[str, Any]:
    """
    Overlay locally computed metrics on the grader's metrics object.

    Local values win for every key they provide. A missing local value
    (words per minute without a duration) leaves the grader's figure alone.
    """
    merged = dict(ai_metrics or {})
    for key, value in analysis.to_metrics().items():
        if value is not None:
            merged[key] = value
    return merged


def _failed(error: Exception, transcript: Optional[str] = None) -> Failed:
    if isinstance(error, EvaluationError):
        return Failed(reason=error.message, code=error.code.value, transcript=transcript)
    return Failed(
        reason="Evaluation failed unexpectedly.",
        code=ErrorCode.UNKNOWN.value,
        transcript=transcript,
    )


class EvaluationPipeline:
    """
    Runs free-response evaluation for the mock test orchestrator.

    Collaborators are injectable so tests can stub the transcriber and the
    graders without touching the network.
    """

    def __init__(
        self,
        transcriber: Optional[WhisperTranscriber] = None,
        writing_grader: Optional[WritingGrader] = None,
        speaking_grader: Optional[SpeakingGrader] = None,
        enabled: Optional[bool] = None,
    ):
        self._transcriber = transcriber
        self._writing_grader = writing_grader
        self._speaking_grader = speaking_grader
        self.enabled = settings.EVALUATION_ENABLED if enabled is None else enabled

    @property
    def transcriber(self) -> WhisperTranscriber:
        if self._transcriber is None:
            self._transcriber = get_transcriber()
        return self._transcriber

    @property
    def writing_grader(self) -> WritingGrader:
        if self._writing_grader is None:
            self._writing_grader = WritingGrader()
        return self._writing_grader

    @property
    def speaking_grader(self) -> SpeakingGrader:
        if self._speaking_grader is None:
            self._speaking_grader = SpeakingGrader()
        return self._speaking_grader

    async def evaluate_writing(
        self,
        task_type: str,
        variant: str,
        prompt: str,
        essay: str,
    ) -> EvaluationOutcome:
        """Grade one essay. Never raises."""
        if not self.enabled:
            return Pending()

        try:
            with stage_span("pipeline.analysis", {"module": "WRITING", "task": task_type}):
                analysis = analyze_speech(essay)

            with stage_span("pipeline.grading", {"module": "WRITING", "task": task_type}):
                evaluation = await self.writing_grader.grade(
                    task_type=task_type,
                    variant=variant,
                    prompt=prompt,
                    essay=essay,
                )

            with stage_span("pipeline.merge", {"module": "WRITING"}):
                metrics = merge_metrics(evaluation.metrics, analysis)

            return Scored(
                band=evaluation.overall_band,
                rubric_breakdown=evaluation.criteria.model_dump(),
                metrics=metrics,
                feedback=evaluation.overall_feedback,
                details=evaluation.model_dump(
                    include={"word_count", "word_count_feedback", "rewritten_excerpt"}
                ),
            )
        except EvaluationError as e:
            logger.warning(f"[Pipeline] Writing evaluation failed ({e.code.value}): {e.message}")
            return _failed(e)
        except Exception as e:
            logger.exception(f"[Pipeline] Unexpected writing evaluation error: {e}")
            return _failed(e)

    async def evaluate_speaking(
        self,
        part: int,
        prompt: Dict[str, Any],
        audio: Optional[bytes] = None,
        transcript: Optional[str] = None,
        duration_seconds: Optional[float] = None,
        mime_type: str = "audio/webm",
    ) -> EvaluationOutcome:
        """
        Transcribe (unless a transcript is supplied) and grade one speaking part.

        Never raises. A transcript obtained before a later stage failed is
        kept on the outcome so it can still be stored.
        """
        if not self.enabled:
            return Pending(transcript=transcript)

        try:
            if transcript is None:
                if not audio:
                    raise TranscriptionFailed("No audio or transcript was provided.")
                with stage_span("pipeline.transcription", {"module": "SPEAKING", "part": part}):
                    result = await self.transcriber.transcribe(audio, mime_type=mime_type)
                transcript = result.text
                if duration_seconds is None:
                    duration_seconds = result.duration_seconds
            elif not transcript.strip():
                raise TranscriptionFailed()
        except EvaluationError as e:
            logger.warning(f"[Pipeline] Speaking part {part} transcription failed: {e.message}")
            return _failed(e)
        except Exception as e:
            logger.exception(f"[Pipeline] Unexpected transcription error: {e}")
            return _failed(e)

        try:
            with stage_span("pipeline.analysis", {"module": "SPEAKING", "part": part}):
                analysis = analyze_speech(transcript, duration_seconds)

            with stage_span("pipeline.grading", {"module": "SPEAKING", "part": part}):
                evaluation = await self.speaking_grader.grade(
                    part=part,
                    prompt=prompt,
                    transcript=transcript,
                    duration_seconds=duration_seconds,
                )

            with stage_span("pipeline.merge", {"module": "SPEAKING"}):
                metrics = merge_metrics(evaluation.metrics, analysis)

            return Scored(
                band=evaluation.overall_band,
                rubric_breakdown=evaluation.criteria.model_dump(),
                metrics=metrics,
                feedback=evaluation.overall_feedback,
                transcript=transcript,
                details=evaluation.model_dump(include={"sample_improvements"}),
            )
        except EvaluationError as e:
            logger.warning(f"[Pipeline] Speaking part {part} evaluation failed ({e.code.value}): {e.message}")
            return _failed(e, transcript)
        except Exception as e:
            logger.exception(f"[Pipeline] Unexpected speaking evaluation error: {e}")
            return _failed(e, transcript)


# Default pipeline instance
_default_pipeline: Optional[EvaluationPipeline] = None


def get_evaluation_pipeline() -> EvaluationPipeline:
    global _default_pipeline
    if _default_pipeline is None:
        _default_pipeline = EvaluationPipeline()
    return _default_pipeline
