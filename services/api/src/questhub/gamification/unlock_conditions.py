"""Typed unlock conditions parsed from the JSON stored on achievements and ranks.

Parsing fails fast with ``MalformedUnlockConditions``; callers decide whether
that means "skip" (automatic grant) or "reject" (admin input).
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Literal

from questhub.errors import MalformedUnlockConditions

Operator = Literal["AND", "OR"]


def _parse_ids(raw: Any, field: str) -> frozenset[uuid.UUID]:  # noqa: ANN401
    if not isinstance(raw, list):
        raise MalformedUnlockConditions(f"{field} must be a list of ids")
    try:
        return frozenset(uuid.UUID(str(item)) for item in raw)
    except ValueError as e:
        raise MalformedUnlockConditions(f"{field} contains an invalid id") from e


@dataclass(frozen=True)
class AchievementConditions:
    """Every mission in ``required_missions`` must be approved for the user."""

    required_missions: frozenset[uuid.UUID]

    @classmethod
    def parse(cls, raw: Any) -> AchievementConditions:  # noqa: ANN401
        if not isinstance(raw, Mapping):
            raise MalformedUnlockConditions("unlock_conditions must be an object")
        if "required_missions" not in raw:
            raise MalformedUnlockConditions("required_missions is missing")
        return cls(required_missions=_parse_ids(raw["required_missions"], "required_missions"))

    @property
    def is_empty(self) -> bool:
        return not self.required_missions

    def references(self, mission_id: uuid.UUID) -> bool:
        return mission_id in self.required_missions

    def satisfied_by(self, approved_missions: Iterable[uuid.UUID]) -> bool:
        """An empty requirement set is never satisfied."""
        return not self.is_empty and self.required_missions <= set(approved_missions)

    def to_json(self) -> dict[str, list[str]]:
        return {"required_missions": sorted(str(m) for m in self.required_missions)}


@dataclass(frozen=True)
class IdRequirement:
    """A set of ids combined with AND (all held) or OR (any held)."""

    ids: frozenset[uuid.UUID]
    operator: Operator = "OR"

    @classmethod
    def parse(cls, raw: Any, field: str) -> IdRequirement:  # noqa: ANN401
        if not isinstance(raw, Mapping):
            raise MalformedUnlockConditions(f"{field} must be an object")
        operator = str(raw.get("operator") or "OR").upper()
        if operator not in ("AND", "OR"):
            raise MalformedUnlockConditions(f"{field}.operator must be AND or OR")
        return cls(ids=_parse_ids(raw.get("ids", []), f"{field}.ids"), operator=operator)  # type: ignore[arg-type]

    def satisfied_by(self, held: set[uuid.UUID]) -> bool:
        if not self.ids:
            return False
        if self.operator == "AND":
            return self.ids <= held
        return bool(self.ids & held)


@dataclass(frozen=True)
class RankConditions:
    """Rank qualification: joined campaigns OR held achievements."""

    required_campaigns: IdRequirement | None = None
    required_achievements: IdRequirement | None = None

    @classmethod
    def parse(cls, raw: Any) -> RankConditions:  # noqa: ANN401
        if raw is None:
            return cls()
        if not isinstance(raw, Mapping):
            raise MalformedUnlockConditions("unlock_conditions must be an object")
        campaigns = raw.get("required_campaigns")
        achievements = raw.get("required_achievements")
        return cls(
            required_campaigns=IdRequirement.parse(campaigns, "required_campaigns") if campaigns else None,
            required_achievements=IdRequirement.parse(achievements, "required_achievements") if achievements else None,
        )

    @property
    def is_empty(self) -> bool:
        return self.required_campaigns is None and self.required_achievements is None

    def satisfied_by(self, campaign_ids: set[uuid.UUID], achievement_ids: set[uuid.UUID]) -> bool:
        if self.required_campaigns is not None and self.required_campaigns.satisfied_by(campaign_ids):
            return True
        return self.required_achievements is not None and self.required_achievements.satisfied_by(achievement_ids)

    def to_json(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for field in ("required_campaigns", "required_achievements"):
            req: IdRequirement | None = getattr(self, field)
            if req is not None:
                out[field] = {"ids": sorted(str(i) for i in req.ids), "operator": req.operator}
        return out
