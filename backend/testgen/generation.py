from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .normalizer import NormalizationResult, normalize_with_diagnostics
from .prompts import build_prompt
from .retry import Invoker, Sleeper, invoke_with_retry
from .schemas import GenerationRequest, QuestionKind, QuestionRecord

logger = logging.getLogger(__name__)


@dataclass
class GenerationBatch:
	questions: List[QuestionRecord] = field(default_factory=list)
	errors: Dict[QuestionKind, str] = field(default_factory=dict)
	fallback_kinds: List[QuestionKind] = field(default_factory=list)

	def count(self, kind: QuestionKind) -> int:
		return sum(1 for q in self.questions if q.kind is kind)


def _log_fallback(kind: QuestionKind, result: NormalizationResult) -> None:
	logger.warning("Could not parse %s questions (%s); using placeholders", kind.label, result.error)
	logger.debug("Raw %s text: %s", kind.label, result.raw_text)
	logger.debug("Extracted %s text: %s", kind.label, result.extracted_text)
	logger.debug("Cleaned %s text: %s", kind.label, result.cleaned_text)


def _warn_unmatched_answers(records: List[QuestionRecord]) -> None:
	for record in records:
		if record.correct_answer is not None and record.options and record.correct_answer not in record.options:
			logger.warning("Question %s: correct answer %r is not one of its options", record.id, record.correct_answer)


async def generate_questions(
	invoke: Invoker,
	topic: str,
	*,
	reference: Optional[str] = None,
	mcq_count: int = 0,
	qa_count: int = 0,
	use_same_reference: bool = False,
	start_id: int = 1,
	max_attempts: Optional[int] = None,
	backoff_seconds: Optional[float] = None,
	sleep: Sleeper = asyncio.sleep,
) -> GenerationBatch:
	"""Generate the MCQ batch, then the Q&A batch, numbering ids from ``start_id``.

	A hard model failure for one kind is recorded in ``errors`` and that kind
	contributes no questions; the other kind is still generated.
	"""
	batch = GenerationBatch()
	requests = (
		GenerationRequest(
			topic=topic, reference_material=reference,
			count=mcq_count, kind=QuestionKind.MULTIPLE_CHOICE,
		),
		GenerationRequest(
			topic=topic, reference_material=None if use_same_reference else reference,
			count=qa_count, kind=QuestionKind.OPEN_ENDED,
		),
	)
	next_id = start_id
	for request in requests:
		kind = request.kind
		if request.count == 0:
			continue
		try:
			raw = await invoke_with_retry(
				invoke, build_prompt(request), max_attempts,
				backoff_seconds=backoff_seconds, sleep=sleep,
			)
		except Exception as err:
			logger.error("%s generation failed for topic %r: %s", kind.label, topic, err)
			batch.errors[kind] = str(err)
			continue
		result = normalize_with_diagnostics(raw, kind, request.count, next_id, topic)
		if result.used_fallback:
			_log_fallback(kind, result)
			batch.fallback_kinds.append(kind)
		else:
			_warn_unmatched_answers(result.records)
		batch.questions.extend(result.records)
		next_id = result.next_id
	return batch
