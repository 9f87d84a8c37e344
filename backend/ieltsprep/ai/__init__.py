"""
IELTS Prep - AI Module Initialization
Free-response evaluation: transcription, local analysis and rubric grading.
"""

from ieltsprep.ai.core.llm import LLMClient, LLMResponse, get_llm_client
from ieltsprep.ai.core.telemetry import get_tracer, init_telemetry, stage_span
from ieltsprep.ai.graders import SpeakingGrader, WritingGrader, parse_grader_json
from ieltsprep.ai.pipeline import (
    EvaluationOutcome,
    EvaluationPipeline,
    Failed,
    Pending,
    Scored,
    get_evaluation_pipeline,
)
from ieltsprep.ai.speech_analysis import SpeechAnalysis, analyze_speech
from ieltsprep.ai.transcription import TranscriptionResult, WhisperTranscriber, get_transcriber

__all__ = [
    # Core
    "LLMClient",
    "LLMResponse",
    "get_llm_client",
    "get_tracer",
    "init_telemetry",
    "stage_span",

    # Stages
    "WhisperTranscriber",
    "TranscriptionResult",
    "get_transcriber",
    "SpeechAnalysis",
    "analyze_speech",
    "WritingGrader",
    "SpeakingGrader",
    "parse_grader_json",

    # Pipeline
    "EvaluationPipeline",
    "EvaluationOutcome",
    "Scored",
    "Pending",
    "Failed",
    "get_evaluation_pipeline",
]
