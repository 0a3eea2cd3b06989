from __future__ import annotations
from typing import Optional

from .schemas import GenerationRequest, QuestionKind


def _reference_line(reference: Optional[str]) -> str:
	reference = (reference or "").strip()
	return f"Reference: {reference}\n" if reference else ""


def build_mcq_prompt(topic: str, count: int, reference: Optional[str] = None) -> str:
	return (
		f"Generate {count} multiple choice questions about \"{topic}\".\n"
		f"{_reference_line(reference)}\n"
		"Requirements:\n"
		"- Clear questions (NO code snippets or backticks)\n"
		"- 4 options (A, B, C, D)\n"
		"- 1 point each\n"
		"- Keep questions simple and text-only\n"
		"- IMPORTANT: Include the correctAnswer field with the exact text of the correct option\n\n"
		"Return ONLY valid JSON array:\n"
		'[{"question":"Question text","options":["A","B","C","D"],"correctAnswer":"A","points":1}]'
	)


def build_qa_prompt(topic: str, count: int, reference: Optional[str] = None) -> str:
	return (
		f"Generate {count} open-ended questions about \"{topic}\".\n"
		f"{_reference_line(reference)}\n"
		"Requirements:\n"
		"- Clear questions (NO code snippets or backticks)\n"
		"- Open-ended format\n"
		"- 2 points each\n"
		"- Keep questions simple and text-only\n\n"
		"Return ONLY valid JSON array:\n"
		'[{"question":"Question text","points":2}]'
	)


def build_prompt(request: GenerationRequest) -> str:
	if request.kind is QuestionKind.MULTIPLE_CHOICE:
		return build_mcq_prompt(request.topic, request.count, request.reference_material)
	return build_qa_prompt(request.topic, request.count, request.reference_material)
