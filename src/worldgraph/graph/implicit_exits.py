"""Heuristic detection of exits implied by location descriptions.

Descriptions often mention directions that have no hard exit and no
availability entry yet ("hills rise to the north", "sheer cliffs block
passage west"). The detector scans each description with an ordered pattern
library and proposes at most one candidate per uncovered direction, for a
human to curate into an additions file.

Pattern order matters only for exact ties: a later match replaces the
current candidate for a direction only when it has strictly higher priority
(see ``has_higher_priority``).
"""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal

from worldgraph.graph.directions import Direction, normalize_direction
from worldgraph.graph.mutations import direction_already_covered
from worldgraph.models.location import Availability, Location
from worldgraph.observability.logging import get_logger

log = get_logger(__name__)

Confidence = Literal["high", "medium", "low"]

SKIP_NO_DESCRIPTION = "no description field"

# Characters of context kept on each side of a match
PHRASE_WINDOW = 10

_CONFIDENCE_RANK: dict[str, int] = {"high": 2, "medium": 1, "low": 0}

_ANY_DIR = r"north(?:east|west)?|south(?:east|west)?|east|west|up|down"
_COMPASS = r"north(?:east|west)?|south(?:east|west)?|east|west"


@dataclass(frozen=True)
class ExitPattern:
    """A description pattern with the availability and confidence it implies.

    The regex must define a ``dir`` named group capturing the direction word.
    """

    regex: re.Pattern[str]
    availability: Availability
    confidence: Confidence


def _p(source: str, availability: Availability, confidence: Confidence) -> ExitPattern:
    return ExitPattern(re.compile(source, re.IGNORECASE), availability, confidence)


PATTERNS: tuple[ExitPattern, ...] = (
    # Forbidden, high confidence
    _p(
        r"sheer\s+cliffs?\s+(?:to\s+the\s+|block(?:s|ing)?\s+(?:passage\s+)?"
        rf"|bars?\s+(?:passage\s+)?)(?P<dir>{_ANY_DIR})",
        "forbidden",
        "high",
    ),
    _p(
        rf"(?P<dir>{_ANY_DIR})[^\n.!?]{{0,40}}"
        r"(?:sheer\s+cliff|impassable|no\s+way\s+(?:through|forward|past)|blocked)",
        "forbidden",
        "high",
    ),
    _p(
        r"(?:blocked|impassable|no\s+way\s+(?:through|forward|past)|bars?\s+passage"
        rf"|no\s+(?:safe\s+)?crossing)[^\n.!?]{{0,40}}(?P<dir>{_ANY_DIR})",
        "forbidden",
        "high",
    ),
    _p(
        rf"(?P<dir>{_ANY_DIR})[^\n.!?]{{0,40}}"
        r"(?:blocked|impassable|no\s+way\s+(?:through|forward|past)|bars?\s+passage)",
        "forbidden",
        "high",
    ),
    _p(
        r"(?:cliff|sheer\s+drop|sheer\s+face|rock\s+face|stone\s+wall)[^\n.!?]{0,30}"
        rf"(?P<dir>{_ANY_DIR})",
        "forbidden",
        "high",
    ),
    _p(
        rf"(?P<dir>{_ANY_DIR})[^\n.!?]{{0,30}}(?:cliff|sheer\s+drop|sheer\s+face|rock\s+face)",
        "forbidden",
        "high",
    ),
    # Pending, medium confidence
    _p(rf"\bto\s+the\s+(?P<dir>{_COMPASS})\b", "pending", "medium"),
    _p(r"\b(?P<dir>north|south|east|west)ward\b", "pending", "medium"),
    _p(
        rf"\brises?\s+(?:toward|to(?:wards?)?)\s+the\s+(?P<dir>{_COMPASS})\b",
        "pending",
        "medium",
    ),
    _p(
        r"\bstretches?\s+(?:toward|to(?:wards?)?|beyond|into)\b[^\n.!?]{0,30}"
        rf"(?P<dir>{_COMPASS})\b",
        "pending",
        "medium",
    ),
    _p(
        rf"\b(?P<dir>{_COMPASS})[^\n.!?]{{0,30}}"
        r"(?:stretch(?:es|ing)?|extend(?:s|ing)?|recede(?:s|ing)?|rise(?:s|ing)?"
        r"|lead(?:s|ing)?|continue(?:s|ing)?|open(?:s|ing)?)\b",
        "pending",
        "medium",
    ),
    _p(
        r"\b(?:hills?|plains?|road|path|track|lane|trail|forest|woods?|fields?|moors?"
        rf"|valley|river)\b[^\n.!?]{{0,30}}\b(?P<dir>{_COMPASS})\b",
        "pending",
        "medium",
    ),
    # Pending, low confidence: a bare directional mention
    _p(
        rf"\b(?:distant|far|beyond|across)[^\n.!?]{{0,30}}(?P<dir>{_COMPASS})\b",
        "pending",
        "low",
    ),
    _p(
        rf"\b(?P<dir>{_COMPASS})[^\n.!?]{{0,30}}(?:distant|horizon|far|yonder)\b",
        "pending",
        "low",
    ),
)


@dataclass
class ImplicitExitCandidate:
    location_id: str
    location_name: str
    direction: Direction
    evidence_phrase: str
    confidence: Confidence
    suggested_availability: Availability

    def to_dict(self) -> dict[str, Any]:
        return {
            "locationId": self.location_id,
            "locationName": self.location_name,
            "direction": self.direction.value,
            "evidencePhrase": self.evidence_phrase,
            "confidence": self.confidence,
            "suggestedAvailability": self.suggested_availability,
        }


@dataclass
class ImplicitExitReport:
    """Candidates across a set of locations, plus the locations skipped."""

    scanned_at: str
    total_locations: int = 0
    candidates: list[ImplicitExitCandidate] = field(default_factory=list)
    skipped: list[dict[str, str]] = field(default_factory=list)

    def summary(self) -> dict[str, int]:
        confidence = Counter(c.confidence for c in self.candidates)
        availability = Counter(c.suggested_availability for c in self.candidates)
        return {
            "totalLocations": self.total_locations,
            "locationsWithCandidates": len({c.location_id for c in self.candidates}),
            "skippedLocations": len(self.skipped),
            "totalCandidates": len(self.candidates),
            "highConfidence": confidence["high"],
            "mediumConfidence": confidence["medium"],
            "lowConfidence": confidence["low"],
            "pendingSuggested": availability["pending"],
            "forbiddenSuggested": availability["forbidden"],
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "scannedAt": self.scanned_at,
            "summary": self.summary(),
            "candidates": [c.to_dict() for c in self.candidates],
            "skipped": list(self.skipped),
        }


def has_higher_priority(
    availability: Availability,
    confidence: Confidence,
    incumbent_availability: Availability,
    incumbent_confidence: Confidence,
) -> bool:
    """Decide whether a new match should replace the current candidate.

    Forbidden always outranks pending. With equal availability the higher
    confidence wins; an exact tie keeps the incumbent.
    """
    if availability != incumbent_availability:
        return availability == "forbidden"
    return _CONFIDENCE_RANK[confidence] > _CONFIDENCE_RANK[incumbent_confidence]


def extract_phrase(text: str, start: int, end: int) -> str:
    """Return the match at ``text[start:end]`` with a little surrounding context.

    The window extends ``PHRASE_WINDOW`` characters on each side and is
    marked with an ellipsis wherever it was cut short of the text bounds.
    """
    window_start = max(0, start - PHRASE_WINDOW)
    window_end = min(len(text), end + PHRASE_WINDOW)
    phrase = text[window_start:window_end].strip()
    if window_start > 0:
        phrase = "…" + phrase
    if window_end < len(text):
        phrase = phrase + "…"
    return phrase


def analyse_location(location: Location) -> list[ImplicitExitCandidate]:
    """Propose candidates for one location.

    Returns:
        At most one candidate per direction, ordered by the first match for
        each direction. Empty when the location has no description.
    """
    description = location.description
    if not description:
        return []

    best: dict[Direction, ImplicitExitCandidate] = {}
    for pattern in PATTERNS:
        for match in pattern.regex.finditer(description):
            direction = normalize_direction(match.group("dir"))
            if direction is None or direction_already_covered(location, direction):
                continue
            incumbent = best.get(direction)
            if incumbent is not None and not has_higher_priority(
                pattern.availability,
                pattern.confidence,
                incumbent.suggested_availability,
                incumbent.confidence,
            ):
                continue
            best[direction] = ImplicitExitCandidate(
                location_id=location.id,
                location_name=location.name,
                direction=direction,
                evidence_phrase=extract_phrase(description, match.start(), match.end()),
                confidence=pattern.confidence,
                suggested_availability=pattern.availability,
            )
    return list(best.values())


def analyse_locations(locations: Iterable[Location]) -> ImplicitExitReport:
    """Run ``analyse_location`` over every location and aggregate the results."""
    locations = list(locations)
    report = ImplicitExitReport(
        scanned_at=datetime.now(UTC).isoformat(), total_locations=len(locations)
    )
    for location in locations:
        if not location.description:
            report.skipped.append(
                {
                    "locationId": location.id,
                    "locationName": location.name,
                    "reason": SKIP_NO_DESCRIPTION,
                }
            )
            continue
        report.candidates.extend(analyse_location(location))

    log.info(
        "implicit_exit_analysis_complete",
        locations=report.total_locations,
        candidates=len(report.candidates),
        skipped=len(report.skipped),
    )
    return report
