"""
IELTS Prep - Content Store
Read-only access to exam content for mock test sections.
"""
import random
import uuid
from typing import Any, Dict, Iterable, List, Optional, Set

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ieltsprep.core.config import settings
from ieltsprep.models.content import Content, ContentType, ExamVariant, Module
from ieltsprep.models.mock_test import MockTest, MockTestStatus, SectionResult

# Variants with their own Task 1 type
TASK1_TYPES = {
    ExamVariant.ACADEMIC.value: ContentType.TASK1_ACADEMIC.value,
    ExamVariant.GENERAL.value: ContentType.TASK1_GENERAL.value,
}

TASK1_MIN_WORDS = 150
TASK2_MIN_WORDS = 250


def _parse_id(value: Any) -> Optional[uuid.UUID]:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


class ContentStore:
    """
    Picks content for a section and looks up answer keys.

    Selection is random but prefers items the user has not seen in their
    most recent mock tests; when every candidate was used recently, any
    candidate may be picked.
    """

    def __init__(self, db: AsyncSession, rng: Optional[random.Random] = None):
        self.db = db
        self.rng = rng or random.Random()

    async def list_content(
        self,
        module: str,
        content_type: str,
        variant: Optional[str] = None,
    ) -> List[Content]:
        """Candidates of one type. Items without a variant serve both variants."""
        query = select(Content).where(
            Content.module == module,
            Content.type == content_type,
        )
        if variant is not None:
            query = query.where(or_(Content.variant == variant, Content.variant.is_(None)))

        result = await self.db.execute(query.order_by(Content.created_at, Content.id))
        return list(result.scalars().all())

    async def recently_used_content_ids(self, user_id: uuid.UUID, module: str) -> Set[str]:
        """Content ids the user got for `module` in their last few mock tests."""
        recent_tests = (
            select(MockTest.id)
            .where(
                MockTest.user_id == user_id,
                MockTest.status.in_([
                    MockTestStatus.IN_PROGRESS.value,
                    MockTestStatus.COMPLETED.value,
                ]),
            )
            .order_by(MockTest.started_at.desc())
            .limit(settings.RECENT_CONTENT_WINDOW)
        )
        query = select(SectionResult.content_id).where(
            SectionResult.mock_test_id.in_(recent_tests),
            SectionResult.module == module,
            SectionResult.content_id.isnot(None),
        )
        result = await self.db.execute(query)
        return {content_id for content_id in result.scalars().all()}

    def choose(self, items: List[Content], exclude_ids: Iterable[str] = ()) -> Optional[Content]:
        if not items:
            return None
        excluded = set(exclude_ids)
        fresh = [item for item in items if str(item.id) not in excluded]
        return self.rng.choice(fresh or items)

    async def find_random_content(
        self,
        module: str,
        content_type: str,
        variant: Optional[str] = None,
        exclude_ids: Iterable[str] = (),
    ) -> Optional[Content]:
        items = await self.list_content(module, content_type, variant)
        return self.choose(items, exclude_ids)

    async def get_content(self, content_id: Any) -> Optional[Content]:
        parsed = _parse_id(content_id)
        if parsed is None:
            return None
        return await self.db.get(Content, parsed)

    # =========================================================================
    # Section bundles (what the client receives, never including answers)
    # =========================================================================

    async def objective_section(
        self,
        user_id: uuid.UUID,
        module: str,
        variant: str,
    ) -> Optional[Content]:
        """Listening sections serve both variants; reading passages are per variant."""
        used = await self.recently_used_content_ids(user_id, module)
        if module == Module.LISTENING.value:
            return await self.find_random_content(
                module, ContentType.LISTENING_SECTION.value, exclude_ids=used
            )
        return await self.find_random_content(
            module, ContentType.READING_PASSAGE.value, variant, exclude_ids=used
        )

    async def writing_tasks(self, user_id: uuid.UUID, variant: str) -> Optional[Dict[str, Any]]:
        """Task 1 (by variant) and Task 2. None unless both exist."""
        module = Module.WRITING.value
        used = await self.recently_used_content_ids(user_id, module)

        task1 = await self.find_random_content(module, TASK1_TYPES[variant], exclude_ids=used)
        task2 = await self.find_random_content(
            module, ContentType.TASK2.value, variant, exclude_ids=used
        )
        if task1 is None or task2 is None:
            return None

        task1_data = task1.content_data or {}
        task2_data = task2.content_data or {}
        return {
            "task1": {
                "id": str(task1.id),
                "taskNumber": 1,
                "title": task1.title or "Task 1",
                "prompt": task1_data.get("prompt"),
                "topic": task1_data.get("topic"),
                "imageUrl": task1_data.get("imageUrl"),
                "imageDescription": task1_data.get("imageDescription"),
                "letterType": task1_data.get("letterType"),
                "minWords": TASK1_MIN_WORDS,
                "recommendedTime": 20,
            },
            "task2": {
                "id": str(task2.id),
                "taskNumber": 2,
                "title": task2.title or "Task 2",
                "prompt": task2_data.get("prompt"),
                "topic": task2_data.get("topic"),
                "minWords": TASK2_MIN_WORDS,
                "recommendedTime": 40,
            },
        }

    async def speaking_parts(self, user_id: uuid.UUID) -> Optional[Dict[str, Any]]:
        """
        One prompt per speaking part. Part 3 prefers a prompt linked to the
        chosen Part 2 via `relatedPart2Id`.
        """
        module = Module.SPEAKING.value
        used = await self.recently_used_content_ids(user_id, module)

        part1 = self.choose(
            await self.list_content(module, ContentType.SPEAKING_PART1.value), used
        )
        part2 = self.choose(
            await self.list_content(module, ContentType.SPEAKING_PART2.value), used
        )
        all_part3 = await self.list_content(module, ContentType.SPEAKING_PART3.value)

        related = []
        if part2 is not None:
            related = [
                item for item in all_part3
                if (item.content_data or {}).get("relatedPart2Id") == str(part2.id)
            ]
        part3 = self.choose(related or all_part3, used)

        if part1 is None or part2 is None or part3 is None:
            return None

        part1_data = part1.content_data or {}
        part2_data = part2.content_data or {}
        part3_data = part3.content_data or {}
        return {
            "part1": {
                "id": str(part1.id),
                "topic": part1_data.get("topic"),
                "questions": part1_data.get("questions"),
            },
            "part2": {
                "id": str(part2.id),
                "topic": part2_data.get("topic"),
                "cueCard": part2_data.get("cueCard"),
                "prepTime": part2_data.get("prepTime") or 60,
                "speakingTime": part2_data.get("speakingTime") or 120,
                "followUpQuestion": part2_data.get("followUpQuestion"),
            },
            "part3": {
                "id": str(part3.id),
                "topic": part3_data.get("topic"),
                "questions": part3_data.get("questions"),
            },
        }


def client_view(content: Content, module: str) -> Dict[str, Any]:
    """Listening/reading content as sent to the candidate (no answer key)."""
    data = content.content_data or {}
    view: Dict[str, Any] = {"title": data.get("title") or content.title}
    if module == Module.LISTENING.value:
        view["audioUrl"] = data.get("audioUrl")
        view["transcript"] = data.get("transcript")
    else:
        view["passage"] = data.get("passage")
    view["questions"] = data.get("questions")
    return view
