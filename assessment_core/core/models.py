"""
Core content and learner models.

Questions are owned by the content store and treated as read-only input;
learner profiles are owned by the mastery store and only ever updated
incrementally.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

PUBLISHED_STATUS = "published"


class Difficulty(str, Enum):
    """Question difficulty tag."""

    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"

    @classmethod
    def parse(cls, value: Any) -> Difficulty | None:
        """Parse a stored difficulty tag; unknown or empty tags yield None."""
        if value is None or value == "":
            return None
        if isinstance(value, Difficulty):
            return value
        text = str(value).strip().lower()
        for member in cls:
            if member.value.lower() == text:
                return member
        return None


@dataclass(frozen=True)
class Question:
    """A single multiple-choice question from the content pool."""

    id: str
    text: str = ""
    options: tuple[str, ...] = ()
    correct_answer: str | None = None
    difficulty: Difficulty | None = None
    topic_id: str | None = None
    status: str | None = PUBLISHED_STATUS
    is_archived: bool = False

    @property
    def is_published(self) -> bool:
        """Untagged questions are treated as published."""
        return not self.status or self.status == PUBLISHED_STATUS

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Question:
        """Build a question from a stored document (camelCase or snake_case keys)."""
        return cls(
            id=str(data["id"]),
            text=data.get("text", ""),
            options=tuple(data.get("options") or ()),
            correct_answer=data.get("correctAnswer", data.get("correct_answer")),
            difficulty=Difficulty.parse(data.get("difficulty")),
            topic_id=data.get("topicId", data.get("topic_id")),
            status=data.get("status"),
            is_archived=bool(data.get("isArchived", data.get("is_archived", False))),
        )


@dataclass(frozen=True)
class LearnerProfile:
    """Per-topic mastery snapshot for one learner."""

    topic_mastery: dict[str, float] = field(default_factory=dict)
    updated_at: int = 0  # epoch ms

    def mastery_for(self, topic_id: str | None, default: float) -> float:
        """Mastery for a topic, or `default` when the topic has no record."""
        if topic_id is None or topic_id not in self.topic_mastery:
            return default
        return self.topic_mastery[topic_id]

    def to_dict(self) -> dict[str, Any]:
        return {"topicMastery": dict(self.topic_mastery), "updatedAt": self.updated_at}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LearnerProfile:
        return cls(
            topic_mastery={
                str(k): float(v) for k, v in (data.get("topicMastery") or {}).items()
            },
            updated_at=int(data.get("updatedAt") or 0),
        )
