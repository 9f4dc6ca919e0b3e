"""Presión de lobby por partido."""

from __future__ import annotations

from typing import Dict, List

# positive pushes toward YES, negative toward NO
DEFAULT_PARTY_PRESSURES: Dict[str, float] = {
    "Democrat": 0.05,
    "Republican": -0.05,
    "Independent": 0.02,
}


class LobbyGroup:
    def __init__(self, party_pressures: Dict[str, float] | None = None):
        if party_pressures is None:
            party_pressures = DEFAULT_PARTY_PRESSURES
        self.party_pressures = {str(k): float(v) for k, v in party_pressures.items()}

    def pressure_for(self, party: str) -> float:
        # unknown parties are not lobbied
        return self.party_pressures.get(party, 0.0)

    def scaled(self, factor: float) -> "LobbyGroup":
        return LobbyGroup({k: v * factor for k, v in self.party_pressures.items()})


def parse_pressures(entries: List[str]) -> Dict[str, float]:
    """Parse ``Party=0.05`` command line entries into a pressure table."""
    result: Dict[str, float] = {}
    for entry in entries:
        party, sep, value = entry.partition("=")
        party = party.strip()
        if not sep or not party:
            raise ValueError(f"expected Party=value, got {entry!r}")
        try:
            result[party] = float(value)
        except ValueError:
            raise ValueError(f"pressure for {party!r} is not a number: {value!r}") from None
    return result
