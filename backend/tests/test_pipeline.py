"""
IELTS Prep - Evaluation Pipeline Tests
"""
from unittest.mock import AsyncMock, MagicMock

import pytest

from ieltsprep.ai.pipeline import EvaluationPipeline, Failed, Pending, Scored
from ieltsprep.ai.transcription import TranscriptionResult, WhisperTranscriber
from ieltsprep.core.config import settings
from ieltsprep.core.errors import GradingParseFailed, GradingUnavailable, TranscriptionFailed
from ieltsprep.models.mock_test import EvaluationStatus
from ieltsprep.schemas.evaluation import SpeakingEvaluation, WritingEvaluation
from tests.test_graders import SPEAKING_REPLY, WRITING_REPLY

ESSAY = (
    "Some people think that technology improves education. "
    "Others believe it distracts students from learning. "
    "Technology technology technology is everywhere, and teachers must adapt to it quickly. "
    "Do schools really have a choice?"
)


def make_pipeline(transcriber=None, writing=None, speaking=None, enabled=True):
    writing_grader = MagicMock()
    writing_grader.grade = writing or AsyncMock(
        return_value=WritingEvaluation.model_validate(WRITING_REPLY)
    )
    speaking_grader = MagicMock()
    speaking_grader.grade = speaking or AsyncMock(
        return_value=SpeakingEvaluation.model_validate(SPEAKING_REPLY)
    )
    return EvaluationPipeline(
        transcriber=transcriber or MagicMock(),
        writing_grader=writing_grader,
        speaking_grader=speaking_grader,
        enabled=enabled,
    )


def stub_transcriber(text="I, um, travelled to Kyoto last year. It was wonderful.", duration=30.0, error=None):
    transcriber = MagicMock()
    if error is not None:
        transcriber.transcribe = AsyncMock(side_effect=error)
    else:
        transcriber.transcribe = AsyncMock(return_value=TranscriptionResult(text=text, duration_seconds=duration))
    return transcriber


@pytest.mark.asyncio
async def test_writing_scored_with_local_metrics_merged():
    pipeline = make_pipeline()

    outcome = await pipeline.evaluate_writing("task2", "academic", "Discuss.", ESSAY)

    assert isinstance(outcome, Scored)
    assert outcome.status is EvaluationStatus.SCORED
    assert outcome.band == 6.5
    assert outcome.rubric_breakdown["lexical_resource"]["band"] == 6.0
    assert outcome.metrics["repeatedWords"][0]["word"] == "technology"
    assert outcome.metrics["sentenceVarietyScore"] > 0
    assert "technology" in outcome.metrics["overusedWords"]
    assert outcome.to_dict()["word_count"] == 262


@pytest.mark.asyncio
async def test_grading_parse_failure_becomes_failed_outcome():
    pipeline = make_pipeline(writing=AsyncMock(side_effect=GradingParseFailed()))

    outcome = await pipeline.evaluate_writing("task2", "academic", "Discuss.", ESSAY)

    assert isinstance(outcome, Failed)
    assert outcome.code == "GRADING_PARSE_FAILED"
    assert outcome.to_dict()["status"] == "FAILED"


@pytest.mark.asyncio
async def test_unexpected_error_never_escapes():
    pipeline = make_pipeline(writing=AsyncMock(side_effect=KeyError("boom")))

    outcome = await pipeline.evaluate_writing("task1_academic", "academic", "Summarise.", ESSAY)

    assert isinstance(outcome, Failed)
    assert outcome.code == "UNKNOWN"


@pytest.mark.asyncio
async def test_speaking_transcribes_then_grades():
    transcriber = stub_transcriber()
    pipeline = make_pipeline(transcriber=transcriber)

    outcome = await pipeline.evaluate_speaking(part=1, prompt={"topic": "Travel"}, audio=b"\x00\x01")

    assert isinstance(outcome, Scored)
    assert outcome.transcript.startswith("I, um, travelled")
    # Local words per minute (from the transcription duration) replaces the grader's figure
    assert outcome.metrics["wordsPerMinute"] == 20.0
    assert outcome.metrics["totalWords"] == 10
    assert outcome.metrics["fillerWordCount"] == 1
    transcriber.transcribe.assert_awaited_once()
    grade_kwargs = pipeline.speaking_grader.grade.await_args.kwargs
    assert grade_kwargs["duration_seconds"] == 30.0


@pytest.mark.asyncio
async def test_speaking_keeps_grader_wpm_without_duration():
    pipeline = make_pipeline()

    outcome = await pipeline.evaluate_speaking(part=3, prompt={}, transcript="Cities grow because jobs move there.")

    assert isinstance(outcome, Scored)
    assert outcome.metrics["wordsPerMinute"] == 110


@pytest.mark.asyncio
async def test_empty_transcription_fails_before_grading():
    pipeline = make_pipeline(transcriber=stub_transcriber(error=TranscriptionFailed()))

    outcome = await pipeline.evaluate_speaking(part=1, prompt={}, audio=b"\x00")

    assert isinstance(outcome, Failed)
    assert outcome.code == "TRANSCRIPTION_FAILED"
    pipeline.speaking_grader.grade.assert_not_awaited()


@pytest.mark.asyncio
async def test_blank_transcript_and_missing_audio_fail():
    pipeline = make_pipeline()

    assert (await pipeline.evaluate_speaking(part=1, prompt={}, transcript="   ")).code == "TRANSCRIPTION_FAILED"
    assert (await pipeline.evaluate_speaking(part=1, prompt={})).code == "TRANSCRIPTION_FAILED"


@pytest.mark.asyncio
async def test_grading_failure_keeps_transcript():
    pipeline = make_pipeline(
        transcriber=stub_transcriber(text="Hello there."),
        speaking=AsyncMock(side_effect=GradingUnavailable()),
    )

    outcome = await pipeline.evaluate_speaking(part=2, prompt={}, audio=b"\x00")

    assert isinstance(outcome, Failed)
    assert outcome.code == "GRADING_UNAVAILABLE"
    assert outcome.transcript == "Hello there."


@pytest.mark.asyncio
async def test_disabled_pipeline_returns_pending():
    pipeline = make_pipeline(enabled=False)

    assert isinstance(await pipeline.evaluate_writing("task2", "academic", "p", ESSAY), Pending)
    outcome = await pipeline.evaluate_speaking(part=1, prompt={}, transcript="hi")
    assert isinstance(outcome, Pending)
    assert outcome.to_dict() == {"status": "PENDING"}
    pipeline.writing_grader.grade.assert_not_awaited()


def test_whisper_requests_are_time_boxed(monkeypatch):
    monkeypatch.setattr(settings, "OPENAI_API_KEY", "sk-test")
    monkeypatch.setattr(settings, "TRANSCRIPTION_TIMEOUT_SECONDS", 12)

    assert WhisperTranscriber().client.timeout == 12


def test_transcription_failure_is_unprocessable():
    error = TranscriptionFailed()

    assert error.status_code == 422
    assert error.to_dict()["code"] == "TRANSCRIPTION_FAILED"
