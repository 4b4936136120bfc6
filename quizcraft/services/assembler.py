"""
Quiz assembly

Turns a quiz configuration into a concrete, ordered list of questions drawn
from the question bank, and validates configurations against live inventory.
"""

import asyncio
import logging
import random
from typing import List, Optional, Sequence

from quizcraft.core.exceptions import (
    AssemblyInventoryError,
    ConfigValidationError,
    NotFoundException,
    QuizGenerationError,
    RepositoryError,
)
from quizcraft.core.logging import log_execution_time
from quizcraft.schemas.answers import blank_count
from quizcraft.schemas.question import DrawnQuestion, Question
from quizcraft.schemas.quiz import (
    AssembledQuiz,
    FilterSet,
    PartAvailability,
    QuizConfig,
    QuizConfigBase,
    QuizPartSpec,
)
from quizcraft.services.repository import QuizRepository

logger = logging.getLogger(__name__)


def _drawn(question: Question, part: QuizPartSpec) -> DrawnQuestion:
    return DrawnQuestion(
        id=question.id,
        type=question.type,
        text=question.text,
        image_urls=question.image_urls,
        options=question.options,
        subject=question.subject,
        grade_level=question.grade_level,
        difficulty=question.difficulty,
        category=question.category,
        score=part.score,
        needs_grading=question.needs_grading,
        blank_count=blank_count(question),
        quiz_part_name=part.name,
    )


class QuizAssembler:
    """
    Draws quizzes from a repository.

    ``rng`` is any ``random.Random``; pass a seeded one for reproducible draws.
    """

    def __init__(self, repository: QuizRepository, rng: Optional[random.Random] = None):
        self.repository = repository
        self.rng = rng or random.Random()

    def compute_availability(self, filters: FilterSet) -> int:
        return self.repository.count_matching(filters)

    async def compute_part_availability(self, parts: Sequence[QuizPartSpec]) -> List[int]:
        """Inventory for every part; the counts are independent so they run concurrently"""
        counts = await asyncio.gather(
            *(asyncio.to_thread(self.compute_availability, part.filters) for part in parts)
        )
        return list(counts)

    async def availability_report(self, parts: Sequence[QuizPartSpec]) -> List[PartAvailability]:
        counts = await self.compute_part_availability(parts)
        return [
            PartAvailability(
                part_id=part.id, part_name=part.name, requested=part.count, available=available
            )
            for part, available in zip(parts, counts)
        ]

    def validate_config(
        self, config: QuizConfigBase, availability: Optional[Sequence[int]] = None
    ) -> None:
        """
        Check a config before it is saved.

        Every part must fit within its live inventory and the passing score
        must be reachable. All violations are reported together.
        """
        if availability is None:
            availability = [self.compute_availability(part.filters) for part in config.parts]

        violations = []
        if not config.parts:
            violations.append({"message": "quiz config has no parts"})

        if config.passing_score > config.max_score:
            violations.append(
                {
                    "message": (
                        f"passing score {config.passing_score} exceeds "
                        f"maximum score {config.max_score}"
                    ),
                    "passing_score": config.passing_score,
                    "max_score": config.max_score,
                    "excess": config.passing_score - config.max_score,
                }
            )

        for part, available in zip(config.parts, availability):
            if part.count > available:
                violations.append(
                    {
                        "message": (
                            f'part "{part.name}" requests {part.count} questions '
                            f"but only {available} match"
                        ),
                        "part_id": part.id,
                        "part_name": part.name,
                        "requested": part.count,
                        "available": available,
                        "shortfall": part.count - available,
                    }
                )

        if violations:
            raise ConfigValidationError(violations)

    @log_execution_time(logger)
    def assemble(self, config: QuizConfig) -> AssembledQuiz:
        """
        Draw ``count`` questions for each part, in part order.

        A question drawn by an earlier part is not offered to later ones, so
        one quiz never repeats a question. Raises AssemblyInventoryError when a
        part cannot be filled and QuizGenerationError when the repository fails.
        """
        if not config.parts:
            raise ConfigValidationError([{"message": "quiz config has no parts"}])

        try:
            candidates = [self.repository.fetch_matching_ids(part.filters) for part in config.parts]

            used = set()
            picks = []
            for part, pool in zip(config.parts, candidates):
                available = [qid for qid in pool if qid not in used]
                if len(available) < part.count:
                    raise AssemblyInventoryError(part.id, part.name, part.count, len(available))
                selected = self.rng.sample(available, part.count)
                used.update(selected)
                picks.extend((qid, part) for qid in selected)

            records = {q.id: q for q in self.repository.get_questions_by_ids([qid for qid, _ in picks])}
        except RepositoryError as e:
            logger.error(
                "Quiz generation failed",
                extra={"config_id": config.id, "error": e.message},
            )
            raise QuizGenerationError(details={"config_id": config.id}) from e

        missing = [qid for qid, _ in picks if qid not in records]
        if missing:
            # Deleted between the id query and the record fetch
            raise QuizGenerationError(
                "Questions disappeared while the quiz was being generated",
                details={"config_id": config.id, "missing": missing},
            )

        questions = [_drawn(records[qid], part) for qid, part in picks]
        logger.info(
            "Quiz assembled",
            extra={"config_id": config.id, "question_count": len(questions)},
        )
        return AssembledQuiz(
            questions=questions,
            config_name=config.name,
            passing_score=config.passing_score,
            config=config,
        )

    def assemble_by_id(self, config_id: str) -> AssembledQuiz:
        try:
            config = self.repository.get_config_by_id(config_id)
        except RepositoryError as e:
            raise QuizGenerationError(details={"config_id": config_id}) from e
        if config is None or config.is_deleted:
            raise NotFoundException("Quiz config", {"config_id": config_id})
        return self.assemble(config)
