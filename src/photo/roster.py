"""Closed roster of golfers a photo request may reference."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Tuple

from src.core.config import Settings, split_csv
from src.photo.errors import InvalidSubjectError


@dataclass(frozen=True)
class RosterGroup:
    label: str
    names: Tuple[str, ...]


class SubjectRoster:
    """Static allow-list of subject names, grouped for display only."""

    def __init__(self, groups: Iterable[RosterGroup]) -> None:
        self._groups = tuple(groups)
        self._names = frozenset(name for group in self._groups for name in group.names)

    @classmethod
    def from_settings(cls, settings: Settings) -> "SubjectRoster":
        return cls(
            [
                RosterGroup(label="Today's Favourites", names=tuple(split_csv(settings.photo_top_golfers))),
                RosterGroup(label="Alternative Favourites", names=tuple(split_csv(settings.photo_alt_golfers))),
            ]
        )

    @property
    def groups(self) -> Tuple[RosterGroup, ...]:
        return self._groups

    def contains(self, name: str) -> bool:
        return (name or "").strip() in self._names

    def validate(self, name: str) -> str:
        cleaned = (name or "").strip()
        if cleaned not in self._names:
            raise InvalidSubjectError("invalid_golfer")
        return cleaned

    def as_dict(self) -> Dict[str, List[Dict[str, Any]]]:
        return {"groups": [{"label": group.label, "names": list(group.names)} for group in self._groups]}
