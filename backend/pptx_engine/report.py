"""Replacement log records returned in the generation report."""
from dataclasses import dataclass, field
from typing import Dict, List


@dataclass(frozen=True)
class ReplacementEntry:
    original: str
    replaced: str
    kind: str  # placeholder / loop / image / date / title / company / customer / <label>

    def to_dict(self) -> Dict[str, str]:
        return {'original': self.original, 'replaced': self.replaced, 'type': self.kind}


@dataclass
class ReplacementLog:
    slide_index: int
    role: str
    entries: List[ReplacementEntry] = field(default_factory=list)

    def add(self, original: str, replaced: str, kind: str) -> None:
        self.entries.append(ReplacementEntry(original, replaced, kind))

    def extend(self, entries: List[ReplacementEntry]) -> None:
        self.entries.extend(entries)

    def count(self, *kinds: str) -> int:
        if not kinds:
            return len(self.entries)
        return sum(1 for e in self.entries if e.kind in kinds)

    def __bool__(self) -> bool:
        return bool(self.entries)

    def to_dict(self) -> Dict:
        return {
            'slide_index': self.slide_index,
            'slide_type': self.role,
            'replacements': [e.to_dict() for e in self.entries],
        }
