"""Score a taker's answers against a published question list.

Only multiple-choice questions are scored automatically; open-ended answers
are stored with zero points earned so the maximum score still counts them.
"""
from __future__ import annotations
import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .schemas import QuestionKind


@dataclass
class ScoredAnswer:
	question_id: str
	question: str
	kind: str
	answer: str
	max_points: int
	points_earned: int = 0
	is_correct: Optional[bool] = None
	correct_answer: Optional[str] = None


@dataclass
class ScoredSubmission:
	answers: List[ScoredAnswer]
	total_score: int
	max_score: int

	@property
	def percentage(self) -> int:
		if self.max_score <= 0:
			return 0
		# Half-up rounding, capped at 100
		return min(100, math.floor(self.total_score * 100 / self.max_score + 0.5))


def _max_points(question: Dict[str, Any]) -> int:
	points = question.get("points")
	return points if isinstance(points, int) and not isinstance(points, bool) and points >= 1 else 1


def score_submission(questions: List[Dict[str, Any]], answers: Iterable[Tuple[str, str]]) -> ScoredSubmission:
	"""Score ``(question_id, answer)`` pairs; unknown ids are ignored and the last answer per id wins."""
	by_id = {question_id: answer for question_id, answer in answers}
	scored: List[ScoredAnswer] = []
	total = 0
	for question in questions:
		question_id = question.get("id")
		if question_id not in by_id:
			continue
		answer = by_id[question_id]
		entry = ScoredAnswer(
			question_id=question_id,
			question=question.get("prompt", ""),
			kind=question.get("kind", QuestionKind.OPEN_ENDED.value),
			answer=answer,
			max_points=_max_points(question),
		)
		if entry.kind == QuestionKind.MULTIPLE_CHOICE.value:
			entry.correct_answer = question.get("correct_answer")
			entry.is_correct = entry.correct_answer is not None and answer == entry.correct_answer
			if entry.is_correct:
				entry.points_earned = entry.max_points
		total += entry.points_earned
		scored.append(entry)
	max_score = sum(_max_points(q) for q in questions)
	return ScoredSubmission(answers=scored, total_score=total, max_score=max_score)
