from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List

import pandas as pd

from lobby import LobbyGroup
from model import CongressModel


@dataclass
class LobbyScenario:
    name: str
    party_pressures: Dict[str, float] | None = None
    capture_probability: float = 0.10


def evaluate_scenarios(
    scenarios: List[LobbyScenario],
    seeds: List[int],
    composition: str,
    sessions: int,
    base_params: Dict[str, object],
) -> pd.DataFrame:
    """Ejecuta varios escenarios de lobby sobre distintas semillas y devuelve resultados por proyecto."""
    rows = []
    for scenario in scenarios:
        for seed in seeds:
            params = dict(base_params)
            params.update(
                seed=seed,
                composition=composition,
                lobby_group=LobbyGroup(scenario.party_pressures),
                capture_probability=scenario.capture_probability,
            )
            model = CongressModel(**params)
            for _ in range(sessions * len(model.docket)):
                model.step()
                result = model.last_result
                m = model.last_metrics
                rows.append(
                    dict(
                        scenario=scenario.name,
                        seed=seed,
                        composition=composition,
                        round=model.round_count,
                        bill=result.bill.name,
                        house_yes=result.house.total_yes,
                        senate_yes=result.senate.total_yes,
                        passed=result.passed,
                        reputation_mean=m.get("reputation_mean", 0.0),
                        trust_mean=m.get("trust_mean", 0.0),
                        broken_ties=m.get("broken_ties", 0.0),
                    )
                )
    return pd.DataFrame(rows)


def pass_rates(results: pd.DataFrame) -> pd.DataFrame:
    return (
        results.groupby(["scenario", "bill"])
        .agg(pass_rate=("passed", "mean"), house_yes_mean=("house_yes", "mean"), runs=("passed", "count"))
        .reset_index()
    )
