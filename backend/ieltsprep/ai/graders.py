"""
IELTS Prep - Rubric Graders
Scores essays and speaking transcripts against the four IELTS criteria
through the shared LLM client.
"""
import json
import logging
import re
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, ValidationError

from ieltsprep.ai.core.llm import LLMClient, get_llm_client
from ieltsprep.core.errors import GradingParseFailed, GradingUnavailable
from ieltsprep.schemas.evaluation import SpeakingEvaluation, WritingEvaluation

logger = logging.getLogger(__name__)

FENCED_BLOCK_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")

_CRITERION_SHAPE = """{
      "band": <number>,
      "summary": "<one or two sentences>",
      "strengths": ["<strength, quoting the candidate>", ...],
      "improvements": ["<concrete, actionable improvement>", ...]
    }"""


def parse_grader_json(text: str) -> Dict[str, Any]:
    """
    Decode a grader reply.

    Plain JSON is tried first; failing that, the first fenced code block is
    decoded once. Anything else raises GradingParseFailed.
    """
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError):
        pass

    match = FENCED_BLOCK_RE.search(text or "")
    if match:
        try:
            return json.loads(match.group(1))
        except json.JSONDecodeError:
            pass

    raise GradingParseFailed()


class RubricGrader:
    """
    Base grader: prompt the model, decode its JSON and validate the contract.

    Subclasses provide the system prompt, the response schema and how a
    request is rendered as the user message.
    """

    name = "RubricGrader"
    SYSTEM_PROMPT = ""
    schema: Type[BaseModel]

    def __init__(self, llm: Optional[LLMClient] = None):
        self.llm = llm or get_llm_client()

    async def _grade(self, user_message: str) -> BaseModel:
        if not self.llm.is_configured:
            raise GradingUnavailable("AI grading service is not configured.")

        try:
            response = await self.llm.generate(
                prompt=user_message,
                system_prompt=self.SYSTEM_PROMPT,
                agent_name=self.name,
            )
        except Exception as e:
            logger.error(f"[{self.name}] Grading request failed: {e}")
            raise GradingUnavailable() from e

        payload = parse_grader_json(response.content)
        try:
            return self.schema.model_validate(payload)
        except ValidationError as e:
            logger.warning(f"[{self.name}] Grader reply failed validation: {e.error_count()} errors")
            raise GradingParseFailed(
                "AI response did not match the expected format."
            ) from e


class WritingGrader(RubricGrader):
    """Grades Task 1 and Task 2 essays."""

    name = "WritingGrader"
    schema = WritingEvaluation

    SYSTEM_PROMPT = f"""You are a senior IELTS Writing examiner. Grade the candidate's response \
against the public IELTS band descriptors and give feedback the candidate can act on.

Criteria:
1. Task Achievement (Task 1) or Task Response (Task 2). Task 1: is the visual information \
summarised accurately, with a clear overview and the key features picked out? Task 2: are \
all parts of the question answered, is the position clear, and are ideas developed and supported?
2. Coherence and Cohesion: logical progression, sensible paragraphing, cohesive devices used \
naturally rather than mechanically.
3. Lexical Resource: range and precision of vocabulary, spelling, paraphrase, appropriate use \
of less common items.
4. Grammatical Range and Accuracy: variety of structures, accuracy, punctuation.

Bands run from 0 to 9 in steps of 0.5. As a guide: band 5 addresses the task only partly with \
frequent errors; band 6 is adequate with some errors; band 7 covers every part with clear \
progression and occasional errors; band 8 is fully developed with rare errors.

Reply with JSON only, no prose and no code fences, in exactly this shape:
{{
  "overall_band": <number>,
  "criteria": {{
    "task_achievement": {_CRITERION_SHAPE},
    "coherence_cohesion": {_CRITERION_SHAPE},
    "lexical_resource": {_CRITERION_SHAPE},
    "grammatical_range": {_CRITERION_SHAPE}
  }},
  "word_count": <number>,
  "word_count_feedback": "<comment if the length is outside the recommendation, else null>",
  "overall_feedback": "<two or three sentences on performance and priorities>",
  "rewritten_excerpt": {{
    "original": "<weak excerpt from the essay>",
    "improved": "<the same excerpt rewritten>",
    "explanation": "<what changed>"
  }}
}}

Rules:
- Quote the candidate's own words when giving feedback.
- Score the response as a whole, not isolated sentences. Do not inflate bands.
- The overall band is normally the mean of the four criteria rounded to the nearest 0.5.
- Task 1 expects at least 150 words; Task 2 at least 250.
- Describe scores as estimates.
- An off-topic or incomprehensible response receives a low band with an explanation."""

    async def grade(
        self,
        task_type: str,
        variant: str,
        prompt: str,
        essay: str,
    ) -> WritingEvaluation:
        """
        Grade one essay.

        Raises:
            GradingUnavailable: no model configured or the call failed
            GradingParseFailed: the reply was not the expected JSON
        """
        user_message = (
            "## Task Context\n"
            f"- Task Type: {task_type}\n"
            f"- Test Type: {variant}\n"
            f"- Question/Prompt: {prompt}\n\n"
            "## Candidate Response\n\n"
            f"{essay}"
        )
        return await self._grade(user_message)


class SpeakingGrader(RubricGrader):
    """Grades one speaking part from its transcript."""

    name = "SpeakingGrader"
    schema = SpeakingEvaluation

    SYSTEM_PROMPT = f"""You are a senior IELTS Speaking examiner. You only have a transcript \
of the candidate's answer, not the audio.

Criteria:
1. Fluency and Coherence: flow, hesitation, organisation of ideas, discourse markers, \
ability to keep talking.
2. Lexical Resource: range, paraphrase, idiomatic language, precision.
3. Grammatical Range and Accuracy: variety of structures, control of complex forms.
4. Pronunciation: can only be inferred from the text (self-corrections, avoided words). \
Say so in the summary and score conservatively.

Fillers (um, uh, like, you know), repetitions, self-corrections and unfinished sentences are \
the evidence for fluency. Some fillers are normal; heavy use lowers the fluency band.

Part expectations: Part 1 answers run 30 to 60 seconds; Part 2 is a long turn of 1.5 to 2 \
minutes from a cue card; Part 3 answers are longer discussions of 60 to 90 seconds.

Reply with JSON only, in exactly this shape:
{{
  "overall_band": <number>,
  "criteria": {{
    "fluency_coherence": {_CRITERION_SHAPE},
    "lexical_resource": {_CRITERION_SHAPE},
    "grammatical_range": {_CRITERION_SHAPE},
    "pronunciation": {_CRITERION_SHAPE}
  }},
  "metrics": {{
    "wordsPerMinute": <number>,
    "totalWords": <number>,
    "fillerWordCount": <number>,
    "fillerWords": [{{"word": "<word>", "count": <number>}}, ...],
    "uniqueVocabularyRatio": <number between 0 and 1>,
    "averageSentenceLength": <number>,
    "longPausesInferred": <number>
  }},
  "overall_feedback": "<two or three sentences on performance and priorities>",
  "sample_improvements": [
    {{"original": "<quote>", "improved": "<better version>", "explanation": "<why>"}}
  ]
}}

Rules:
- Quote the transcript when giving feedback.
- Be encouraging but honest.
- The overall band is normally the mean of the four criteria.
- Judge answer length against the part being tested."""

    async def grade(
        self,
        part: int,
        prompt: Dict[str, Any],
        transcript: str,
        duration_seconds: Optional[float] = None,
    ) -> SpeakingEvaluation:
        """
        Grade one speaking part.

        ``prompt`` is the stored content for the part: a topic plus either
        questions or a cue card.
        """
        topic = prompt.get("topic", "")
        cue_card = prompt.get("cueCard")
        questions: List[str] = prompt.get("questions") or []

        if part == 2 and cue_card:
            bullets = "\n- ".join(cue_card.get("bulletPoints", []))
            context = f"Cue Card:\n{cue_card.get('mainTask', '')}\n- {bullets}"
        elif questions:
            context = "Questions:\n" + "\n".join(questions)
        else:
            context = f"Topic: {topic}"

        duration = duration_seconds or 0
        user_message = (
            f"## Speaking Part {part}\n\n"
            f"## Prompt/Topic\n{topic}\n\n"
            f"{context}\n\n"
            "## Response Duration\n"
            f"{duration} seconds ({round(duration / 60, 1)} minutes)\n\n"
            "## Transcription\n\n"
            f"{transcript}"
        )
        return await self._grade(user_message)
