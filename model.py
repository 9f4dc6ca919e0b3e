"""Modelo de votación legislativa con redes de confianza (Mesa 3.3+)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Tuple

import numpy as np
from mesa import Agent, DataCollector, Model

from lobby import LobbyGroup
from network import build_trust_graph, compute_trust_metrics

CHAMBERS = ("House", "Senate")
TRACE_EVENTS = os.getenv("TRACE_EVENTS", "0") == "1"

# pesos del puntaje de voto (no normalizados)
W_PARTY = 0.30
W_BELIEF = 0.25
W_SELF_PRESERVATION = 0.15
PEER_INFLUENCE = 0.03
ALLY_THRESHOLD = 0.7
RIVAL_THRESHOLD = 0.3
SPECIAL_INTEREST_BONUS = 0.05
VOTE_THRESHOLD = 0.5
NEUTRAL_STANCE = 0.5
INITIAL_TRUST = 0.5
APPROVAL_STEP = 0.01


def clamp01(value: float) -> float:
    return float(np.clip(value, 0.0, 1.0))


def gini(values: List[float]) -> float:
    arr = np.array(values, dtype=float)
    if arr.size == 0:
        return 0.0
    mean = arr.mean()
    if mean == 0:
        return 0.0
    diff_sum = np.abs(np.subtract.outer(arr, arr)).sum()
    return float(diff_sum / (2 * arr.size**2 * mean))


def _check_unit(name: str, value: float, lo: float = 0.0, hi: float = 1.0) -> float:
    value = float(value)
    if not lo <= value <= hi:
        raise ValueError(f"{name} must be within [{lo}, {hi}], got {value}")
    return value


@dataclass
class Bill:
    """Proyecto de ley con la postura de cada partido (solo lectura)."""

    name: str
    stances: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self):
        self.stances = MappingProxyType(dict(self.stances))

    def stance_for(self, party: str) -> float:
        return float(self.stances.get(party, NEUTRAL_STANCE))


@dataclass
class VoteTally:
    """Conteo de votos de una cámara para un proyecto."""

    total_yes: int = 0
    total_no: int = 0
    party_results: Dict[str, Tuple[int, int]] = field(default_factory=dict)

    def record_vote(self, party: str, voted_yes: bool) -> None:
        yes, no = self.party_results.get(party, (0, 0))
        if voted_yes:
            self.party_results[party] = (yes + 1, no)
            self.total_yes += 1
        else:
            self.party_results[party] = (yes, no + 1)
            self.total_no += 1

    @property
    def passed(self) -> bool:
        # a tie does not carry the chamber
        return self.total_yes > self.total_no


@dataclass(frozen=True)
class PeerSnapshot:
    name: str
    reputation: float
    voted_yes_last_round: bool


@dataclass
class RoundResult:
    bill: Bill
    house: VoteTally
    senate: VoteTally
    passed: bool
    deals: List[Tuple[str, str]] = field(default_factory=list)
    betrayals: List[Tuple[str, str]] = field(default_factory=list)


DEFAULT_DOCKET = (
    Bill("Healthcare Reform Act", {"Democrat": 0.85, "Republican": 0.25, "Independent": 0.50}),
    Bill("Tax Cut Bill", {"Democrat": 0.30, "Republican": 0.80, "Independent": 0.50}),
    Bill("Defense Spending Increase", {"Democrat": 0.50, "Republican": 0.90, "Independent": 0.60}),
)


class Legislator(Agent):
    def __init__(
        self,
        model: "CongressModel",
        name: str,
        chamber: str,
        party: str,
        party_loyalty: float | None = None,
        reelection_concern: float | None = None,
        captured_by_special_interest: bool | None = None,
    ):
        if not name:
            raise ValueError("legislator name must not be empty")
        if chamber not in CHAMBERS:
            raise ValueError(f"unknown chamber {chamber!r}, expected one of {CHAMBERS}")
        if not party:
            raise ValueError("legislator party must not be empty")
        # rasgos estáticos, validados antes de registrar el agente
        if party_loyalty is None:
            party_loyalty = model.rng.uniform(0.5, 1.0)
        party_loyalty = _check_unit("party_loyalty", party_loyalty, lo=0.5)
        if reelection_concern is None:
            reelection_concern = model.rng.uniform(0.0, 1.0)
        reelection_concern = _check_unit("reelection_concern", reelection_concern)
        if captured_by_special_interest is None:
            captured_by_special_interest = model.rng.random() < model.capture_probability
        super().__init__(model)
        self.name = name
        self.chamber = chamber
        self.party = party
        self.party_loyalty = party_loyalty
        self.reelection_concern = reelection_concern
        self.captured_by_special_interest = bool(captured_by_special_interest)
        # estado por ronda
        self.ideological_support = 0.0
        self.lobby_pressure = 0.0
        self.voted_yes_last_round = False
        # estado acumulado
        self.reputation = 0.5
        self.voter_approval = 0.5
        self.trust_levels: Dict[str, float] = {}

    def __repr__(self) -> str:
        return f"Legislator({self.name!r}, {self.chamber}, {self.party})"

    def initialize_trust(self, legislators: Iterable["Legislator"]):
        self.trust_levels = {other.name: INITIAL_TRUST for other in legislators if other.name != self.name}

    def set_ideological_support(self, value: float | None = None):
        if value is None:
            value = self.model.rng.uniform(0.0, 1.0)
        self.ideological_support = clamp01(value)

    def receive_lobby_pressure(self, pressure: float):
        self.lobby_pressure = float(pressure)

    def update_voter_approval(self, voted_with_party: bool):
        delta = APPROVAL_STEP if voted_with_party else -APPROVAL_STEP
        self.voter_approval = clamp01(self.voter_approval + delta)

    def peer_influence(self, peers: Iterable[PeerSnapshot]) -> Tuple[float, float]:
        """Bonus from trusted allies and penalty from distrusted rivals who voted yes last round."""
        bonus = 0.0
        penalty = 0.0
        for peer in peers:
            if peer.name == self.name or not peer.voted_yes_last_round:
                continue
            trust = self.trust_levels[peer.name] * peer.reputation
            if trust > ALLY_THRESHOLD:
                bonus += PEER_INFLUENCE * trust
            if trust < RIVAL_THRESHOLD:
                penalty += PEER_INFLUENCE * (1 - trust)
        return bonus, penalty

    def score_vote(self, stances: Mapping[str, float], peers: Iterable[PeerSnapshot]) -> float:
        party_stance = float(stances.get(self.party, NEUTRAL_STANCE))
        party_pressure = self.party_loyalty * party_stance
        personal_belief = self.ideological_support
        self_preservation = self.reelection_concern * (1 - self.voter_approval)
        trust_bonus, trust_penalty = self.peer_influence(peers)
        special_interest = SPECIAL_INTEREST_BONUS if self.captured_by_special_interest else 0.0
        return (
            W_PARTY * party_pressure
            + W_BELIEF * personal_belief
            + W_SELF_PRESERVATION * self_preservation
            + trust_bonus
            - trust_penalty
            + special_interest
            + self.lobby_pressure
        )

    def vote_on_bill(self, bill: Bill, peers: Iterable[PeerSnapshot]) -> bool:
        """Decide the vote from the round snapshot of peers, then record it."""
        vote_yes = self.score_vote(bill.stances, peers) >= VOTE_THRESHOLD
        self.voted_yes_last_round = vote_yes
        self.update_voter_approval(vote_yes == (bill.stance_for(self.party) >= NEUTRAL_STANCE))
        return vote_yes

    def make_deal_with(self, other: "Legislator"):
        if other.name == self.name:
            return
        gain = self.model.deal_trust_gain
        self.trust_levels[other.name] = min(1.0, self.trust_levels[other.name] + gain)
        other.trust_levels[self.name] = min(1.0, other.trust_levels[self.name] + gain)
        self.reputation = clamp01(self.reputation + self.model.deal_reputation_gain)
        self.model.trust_updates += 1

    def betray(self, other: "Legislator"):
        if other.name == self.name:
            return
        self.trust_levels[other.name] = 0.0
        other.trust_levels[self.name] = 0.0
        self.reputation = clamp01(self.reputation - self.model.betrayal_reputation_loss)
        self.model.trust_updates += 1

    def top_trusted(self, n: int = 3) -> List[Tuple[str, float]]:
        return sorted(self.trust_levels.items(), key=lambda kv: kv[1], reverse=True)[:n]

    def least_trusted(self, n: int = 3) -> List[Tuple[str, float]]:
        return sorted(self.trust_levels.items(), key=lambda kv: kv[1])[:n]


class CongressModel(Model):
    COMPOSITIONS = {
        "congress": (
            {"Democrat": 213, "Republican": 220, "Independent": 2},
            {"Democrat": 48, "Republican": 50, "Independent": 2},
        ),
        "small": (
            {"Democrat": 43, "Republican": 44, "Independent": 1},
            {"Democrat": 10, "Republican": 10, "Independent": 1},
        ),
        "tiny": (
            {"Democrat": 5, "Republican": 5, "Independent": 1},
            {"Democrat": 2, "Republican": 2, "Independent": 1},
        ),
        "empty": ({}, {}),
    }

    def __init__(
        self,
        seed: int | None = None,
        composition: str = "congress",
        house_members: Dict[str, int] | None = None,
        senate_members: Dict[str, int] | None = None,
        lobby_group: LobbyGroup | None = None,
        capture_probability: float = 0.10,
        deal_probability: float = 0.10,
        betrayal_probability: float = 0.05,
        deal_trust_gain: float = 0.10,
        deal_reputation_gain: float = 0.01,
        betrayal_reputation_loss: float = 0.05,
        docket: Iterable[Bill] | None = None,
        **kwargs,
    ):
        super().__init__(seed=seed)
        self.rng = np.random.default_rng(seed)
        if composition not in self.COMPOSITIONS:
            raise ValueError(f"unknown composition {composition!r}, expected one of {sorted(self.COMPOSITIONS)}")
        self.capture_probability = _check_unit("capture_probability", capture_probability)
        self.deal_probability = _check_unit("deal_probability", deal_probability)
        self.betrayal_probability = _check_unit("betrayal_probability", betrayal_probability)
        self.deal_trust_gain = _check_unit("deal_trust_gain", deal_trust_gain)
        self.deal_reputation_gain = _check_unit("deal_reputation_gain", deal_reputation_gain)
        self.betrayal_reputation_loss = _check_unit("betrayal_reputation_loss", betrayal_reputation_loss)
        self.lobby_group = lobby_group or LobbyGroup()
        self.docket: List[Bill] = list(docket) if docket is not None else list(DEFAULT_DOCKET)
        self.composition = composition
        self.round_count = 0
        self.trust_updates = 0
        self.event_log: List[Tuple[str, object]] = []
        self.legislators: List[Legislator] = []
        self._by_name: Dict[str, Legislator] = {}
        self.last_result: RoundResult | None = None
        self.last_metrics: Dict[str, float] = {}

        default_house, default_senate = self.COMPOSITIONS[composition]
        self.populate_chamber("House", house_members if house_members is not None else default_house)
        self.populate_chamber("Senate", senate_members if senate_members is not None else default_senate)

        self.running = True
        self.run_metadata = {
            "seed": seed,
            "composition": composition,
            "capture_probability": self.capture_probability,
            "deal_probability": self.deal_probability,
            "betrayal_probability": self.betrayal_probability,
            "lobby_pressures": dict(self.lobby_group.party_pressures),
        }
        self.datacollector = DataCollector(
            model_reporters={
                "bill": lambda m: m.last_result.bill.name if m.last_result else "",
                "house_yes": lambda m: m.last_result.house.total_yes if m.last_result else 0,
                "house_no": lambda m: m.last_result.house.total_no if m.last_result else 0,
                "senate_yes": lambda m: m.last_result.senate.total_yes if m.last_result else 0,
                "senate_no": lambda m: m.last_result.senate.total_no if m.last_result else 0,
                "passed": lambda m: m.last_result.passed if m.last_result else False,
                "deals": lambda m: len(m.last_result.deals) if m.last_result else 0,
                "betrayals": lambda m: len(m.last_result.betrayals) if m.last_result else 0,
                "reputation_mean": lambda m: m.last_metrics.get("reputation_mean", 0.0),
                "reputation_gini": lambda m: m.last_metrics.get("reputation_gini", 0.0),
                "approval_mean": lambda m: m.last_metrics.get("approval_mean", 0.0),
                "trust_mean": lambda m: m.last_metrics.get("trust_mean", 0.0),
                "broken_ties": lambda m: m.last_metrics.get("broken_ties", 0.0),
                "ally_edges": lambda m: m.last_metrics.get("ally_edges", 0.0),
                "ally_reciprocity": lambda m: m.last_metrics.get("ally_reciprocity", 0.0),
                "largest_bloc": lambda m: m.last_metrics.get("largest_bloc", 0.0),
            },
            agent_reporters={
                "name": "name",
                "chamber": "chamber",
                "party": "party",
                "reputation": "reputation",
                "voter_approval": "voter_approval",
                "voted_yes": "voted_yes_last_round",
            },
        )

    # -- población --

    @staticmethod
    def member_name(party: str, chamber: str, index: int) -> str:
        return f"{party} {chamber} Member {index}"

    def populate_chamber(self, chamber: str, party_counts: Mapping[str, int]):
        for party, count in party_counts.items():
            for i in range(1, int(count) + 1):
                self.add_legislator(self.member_name(party, chamber, i), chamber, party)

    def add_legislator(self, name: str, chamber: str, party: str, **traits) -> Legislator:
        if self.round_count > 0:
            raise RuntimeError("the population is fixed once voting has started")
        if name in self._by_name:
            raise ValueError(f"duplicate legislator name {name!r}")
        legislator = Legislator(self, name, chamber, party, **traits)
        # el recién llegado entra a la red con confianza neutral en ambos sentidos
        legislator.initialize_trust(self.legislators)
        for other in self.legislators:
            other.trust_levels[name] = INITIAL_TRUST
        self.legislators.append(legislator)
        self._by_name[name] = legislator
        return legislator

    def initialize_trust(self):
        """Reset every trust map to neutral. Only allowed before any deal, betrayal or round."""
        if self.round_count > 0 or self.trust_updates > 0:
            raise RuntimeError("trust cannot be reset once deals, betrayals or rounds have happened")
        for legislator in self.legislators:
            legislator.initialize_trust(self.legislators)

    def check_trust_maps(self):
        names = set(self._by_name)
        for legislator in self.legislators:
            expected = names - {legislator.name}
            if set(legislator.trust_levels) != expected:
                missing = sorted(expected - set(legislator.trust_levels))
                extra = sorted(set(legislator.trust_levels) - expected)
                raise ValueError(
                    f"trust map of {legislator.name!r} is out of sync (missing={missing}, extra={extra})"
                )

    def get(self, name: str) -> Legislator:
        return self._by_name[name]

    def chamber(self, chamber: str) -> List[Legislator]:
        return [a for a in self.legislators if a.chamber == chamber]

    # -- fases de la ronda --

    def prepare_for_vote(self) -> Tuple[List[Tuple[str, str]], List[Tuple[str, str]]]:
        for legislator in self.legislators:
            legislator.set_ideological_support()
        for legislator in self.legislators:
            legislator.receive_lobby_pressure(self.lobby_group.pressure_for(legislator.party))
        return self.process_deals_and_betrayals()

    def process_deals_and_betrayals(self) -> Tuple[List[Tuple[str, str]], List[Tuple[str, str]]]:
        deals: List[Tuple[str, str]] = []
        betrayals: List[Tuple[str, str]] = []
        pool = self.legislators
        if len(pool) < 2:
            return deals, betrayals
        for legislator in pool:
            if self.rng.random() < self.deal_probability:
                partner = pool[int(self.rng.integers(len(pool)))]
                if partner is not legislator:
                    legislator.make_deal_with(partner)
                    deals.append((legislator.name, partner.name))
                    self.log_event("deal", (legislator.name, partner.name))
            if self.rng.random() < self.betrayal_probability:
                target = pool[int(self.rng.integers(len(pool)))]
                if target is not legislator:
                    legislator.betray(target)
                    betrayals.append((legislator.name, target.name))
                    self.log_event("betrayal", (legislator.name, target.name))
        return deals, betrayals

    def snapshot_peers(self) -> Tuple[PeerSnapshot, ...]:
        return tuple(
            PeerSnapshot(a.name, a.reputation, a.voted_yes_last_round) for a in self.legislators
        )

    def tally_votes(self, chamber: str, bill: Bill, peers: Tuple[PeerSnapshot, ...]) -> VoteTally:
        tally = VoteTally()
        for member in self.chamber(chamber):
            tally.record_vote(member.party, member.vote_on_bill(bill, peers))
        return tally

    def run_round(self, bill: Bill) -> RoundResult:
        self.check_trust_maps()
        deals, betrayals = self.prepare_for_vote()
        # every vote this round reads last round's outcomes
        peers = self.snapshot_peers()
        house = self.tally_votes("House", bill, peers)
        senate = self.tally_votes("Senate", bill, peers)
        result = RoundResult(
            bill=bill,
            house=house,
            senate=senate,
            passed=house.passed and senate.passed,
            deals=deals,
            betrayals=betrayals,
        )
        self.round_count += 1
        self.last_result = result
        self.log_event("round", (bill.name, result.passed))
        self._update_metrics()
        self.datacollector.collect(self)
        return result

    def step(self):
        if not self.docket:
            self.running = False
            return
        self.run_round(self.docket[self.round_count % len(self.docket)])

    # -- métricas --

    def _update_metrics(self):
        pop = self.legislators
        if not pop:
            self.last_metrics = {}
            return
        trust_values = [t for a in pop for t in a.trust_levels.values()]
        reputations = [a.reputation for a in pop]
        self.last_metrics = {
            "reputation_mean": float(np.mean(reputations)),
            "reputation_gini": gini(reputations),
            "approval_mean": float(np.mean([a.voter_approval for a in pop])),
            "trust_mean": float(np.mean(trust_values)) if trust_values else 0.0,
            "broken_ties": float(sum(1 for t in trust_values if t == 0.0)),
        }
        self.last_metrics.update(compute_trust_metrics(build_trust_graph(pop, min_trust=ALLY_THRESHOLD)))

    def log_event(self, tag: str, payload: object):
        self.event_log.append((tag, payload))
        if TRACE_EVENTS:
            print(f"[{self.round_count}] {tag}: {payload}")
