"""Turn free-text model output into question records.

The pipeline is extract -> clean -> parse, with a deterministic fallback batch
whenever the cleaned text does not parse into usable questions. ``normalize``
never raises; callers that want to log why a batch degraded should use
``normalize_with_diagnostics`` instead.
"""
from __future__ import annotations
import json
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Literal, Optional, Sequence, Tuple

from .schemas import QuestionKind, QuestionRecord


_FENCED_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")
_ARRAY_OF_OBJECTS = re.compile(r"\[\s*\{[\s\S]*?\}\s*\]")

FALLBACK_OPTIONS: Tuple[str, ...] = ("Option A", "Option B", "Option C", "Option D")


def extract_json_text(raw_text: Optional[str]) -> str:
	if not raw_text:
		return ""
	fenced = _FENCED_BLOCK.search(raw_text)
	if fenced:
		return fenced.group(1).strip()
	array = _ARRAY_OF_OBJECTS.search(raw_text)
	if array:
		return array.group(0).strip()
	return raw_text.strip()


def clamp_to_array(text: str) -> str:
	start = text.find("[")
	if start > 0:
		text = text[start:]
	end = text.rfind("]")
	if 0 < end < len(text) - 1:
		text = text[: end + 1]
	return text


def drop_trailing_commas(text: str) -> str:
	text = re.sub(r",\s*}", "}", text)
	return re.sub(r",\s*]", "]", text)


def collapse_blank_lines(text: str) -> str:
	return re.sub(r"\n\s*\n", "\n", text)


def unescape_quotes(text: str) -> str:
	return text.replace('\\"', '"')


def replace_escaped_newlines(text: str) -> str:
	return text.replace("\\n", " ")


def strip_code_spans(text: str) -> str:
	# Code samples inside question text break the surrounding string literals.
	text = re.sub(r"```[\s\S]*?```", "", text)
	return re.sub(r"`[^`]*`", "", text)


def collapse_whitespace(text: str) -> str:
	return re.sub(r"\s+", " ", text).strip()


# Order matters only for clamp_to_array, which bounds the text for the rest.
CLEANUP_RULES: Tuple[Callable[[str], str], ...] = (
	clamp_to_array,
	drop_trailing_commas,
	collapse_blank_lines,
	unescape_quotes,
	replace_escaped_newlines,
	strip_code_spans,
	collapse_whitespace,
)


def clean_json_text(text: str, rules: Sequence[Callable[[str], str]] = CLEANUP_RULES) -> str:
	"""Apply ``rules`` in order, repeating the chain until the text stops changing.

	A later rule can expose work for an earlier one (stripping a code span in
	front of ``]`` leaves a trailing comma behind), so a single pass is not
	enough. With the default rules every pass after the first either leaves the
	text alone or shortens it, so ``len(text) + 2`` passes always reach the
	fixed point; the cap only matters for custom rules that never settle.
	"""
	for _ in range(len(text) + 2):
		cleaned = text
		for rule in rules:
			cleaned = rule(cleaned)
		if cleaned == text:
			break
		text = cleaned
	return text


class QuestionParseError(ValueError):
	pass


@dataclass
class NormalizationResult:
	status: Literal["parsed", "fallback"]
	records: List[QuestionRecord]
	start_id: int
	raw_text: str
	extracted_text: str
	cleaned_text: str
	error: Optional[str] = None

	@property
	def used_fallback(self) -> bool:
		return self.status == "fallback"

	@property
	def next_id(self) -> int:
		return self.start_id + len(self.records)


def _points(value: Any, default: int) -> int:
	if isinstance(value, bool) or not value:
		return default
	try:
		points = int(value)
	except (TypeError, ValueError, OverflowError):
		return default
	return points if points >= 1 else default


def parse_questions(cleaned_text: str, kind: QuestionKind, start_id: int) -> List[QuestionRecord]:
	"""Parse cleaned text into records numbered from ``start_id``.

	Elements that are not objects or carry no question text are skipped. An
	array with no usable element is treated as unparsable.
	"""
	try:
		data = json.loads(cleaned_text)
	except (ValueError, RecursionError) as err:
		raise QuestionParseError(f"invalid JSON: {err}") from err
	if not isinstance(data, list):
		raise QuestionParseError(f"expected a JSON array, got {type(data).__name__}")

	records: List[QuestionRecord] = []
	next_id = start_id
	for item in data:
		if not isinstance(item, dict):
			continue
		question = item.get("question")
		if not isinstance(question, str) or not question.strip():
			continue
		fields: Dict[str, Any] = {
			"id": f"{kind.value}_{next_id}",
			"kind": kind,
			"prompt": question,
			"points": _points(item.get("points"), kind.default_points),
		}
		if kind is QuestionKind.MULTIPLE_CHOICE:
			options = item.get("options")
			if isinstance(options, list):
				fields["options"] = [str(o) for o in options]
			answer = item.get("correctAnswer")
			if answer is not None:
				fields["correct_answer"] = str(answer)
		records.append(QuestionRecord(**fields))
		next_id += 1
	if not records:
		raise QuestionParseError("no usable questions in parsed array")
	return records


def fallback_questions(kind: QuestionKind, count: int, start_id: int, topic: str) -> List[QuestionRecord]:
	records: List[QuestionRecord] = []
	for i in range(count):
		if kind is QuestionKind.MULTIPLE_CHOICE:
			record = QuestionRecord(
				id=f"{kind.value}_{start_id + i}",
				kind=kind,
				prompt=f"Question {i + 1} about {topic}",
				options=list(FALLBACK_OPTIONS),
				points=1,
			)
		else:
			record = QuestionRecord(
				id=f"{kind.value}_{start_id + i}",
				kind=kind,
				prompt=f"Explain {topic} in detail (Question {i + 1})",
				points=2,
			)
		records.append(record)
	return records


def normalize_with_diagnostics(
	raw_text: Optional[str],
	kind: QuestionKind,
	count: int,
	start_id: int,
	topic: str,
) -> NormalizationResult:
	raw = raw_text if isinstance(raw_text, str) else ""
	extracted = extract_json_text(raw)
	cleaned = clean_json_text(extracted)
	try:
		if not cleaned:
			raise QuestionParseError("empty model output")
		records = parse_questions(cleaned, kind, start_id)
	except QuestionParseError as err:
		return NormalizationResult(
			status="fallback",
			records=fallback_questions(kind, count, start_id, topic),
			start_id=start_id,
			raw_text=raw,
			extracted_text=extracted,
			cleaned_text=cleaned,
			error=str(err),
		)
	return NormalizationResult(
		status="parsed",
		records=records,
		start_id=start_id,
		raw_text=raw,
		extracted_text=extracted,
		cleaned_text=cleaned,
	)


def normalize(
	raw_text: Optional[str],
	kind: QuestionKind,
	count: int,
	start_id: int,
	topic: str,
) -> List[QuestionRecord]:
	return normalize_with_diagnostics(raw_text, kind, count, start_id, topic).records
