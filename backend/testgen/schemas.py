from __future__ import annotations
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class QuestionKind(str, Enum):
	MULTIPLE_CHOICE = "mcq"
	OPEN_ENDED = "qa"

	@property
	def default_points(self) -> int:
		return 1 if self is QuestionKind.MULTIPLE_CHOICE else 2

	@property
	def label(self) -> str:
		return "MCQ" if self is QuestionKind.MULTIPLE_CHOICE else "Q&A"


class QuestionRecord(BaseModel):
	id: str
	kind: QuestionKind
	prompt: str
	options: Optional[List[str]] = None
	correct_answer: Optional[str] = None
	points: int = Field(default=1, ge=1)
	required: bool = True


class GenerationRequest(BaseModel):
	topic: str = Field(min_length=1)
	reference_material: Optional[str] = None
	count: int = Field(default=0, ge=0)
	kind: QuestionKind
