import argparse
import os
import sys

import numpy as np
import pandas as pd

from lobby import DEFAULT_PARTY_PRESSURES, LobbyGroup, parse_pressures
from model import CongressModel, RoundResult, VoteTally


parser = argparse.ArgumentParser(description="Simulación de votaciones en el Congreso")
parser.add_argument("--seed", type=int, default=None)
parser.add_argument("--composition", type=str, choices=sorted(CongressModel.COMPOSITIONS), default="congress")
parser.add_argument("--sessions", type=int, default=1, help="times the docket is voted")

parser.add_argument("--captureprobability", type=float, default=0.10)
parser.add_argument("--dealprobability", type=float, default=0.10)
parser.add_argument("--betrayalprobability", type=float, default=0.05)
parser.add_argument("--lobby", action="append", default=[], metavar="PARTY=PRESSURE",
                    help="override lobby pressure for a party (repeatable)")

parser.add_argument("--summary", type=int, default=10, help="legislators listed in the final summary (-1 for all)")
parser.add_argument("--output", type=str, default="results")
parser.add_argument("--nosave", action="store_true", default=False)


def show_chamber_breakdown(chamber: str, tally: VoteTally) -> None:
    parts = [f"{party} YES: {yes}, NO: {no}" for party, (yes, no) in tally.party_results.items()]
    print(f"{chamber} Breakdown: " + " | ".join(parts))


def show_round(result: RoundResult) -> None:
    print(f"\n==== Vote on {result.bill.name} ====")
    print(f"Deals: {len(result.deals)} | Betrayals: {len(result.betrayals)}")
    print("\n--- Vote Results ---")
    print(f"House: YES: {result.house.total_yes} / NO: {result.house.total_no}")
    show_chamber_breakdown("House", result.house)
    print(f"Senate: YES: {result.senate.total_yes} / NO: {result.senate.total_no}")
    show_chamber_breakdown("Senate", result.senate)
    if result.passed:
        print(f"{result.bill.name} PASSES Congress!")
    else:
        print(f"{result.bill.name} FAILS to pass.")


def format_trust(entries) -> str:
    return ", ".join(f"{name} ({value:.2f})" for name, value in entries)


def show_legislator_summary(legislators) -> None:
    print("\n==== Final Legislator Summary ====")
    for legislator in legislators:
        print(f"{legislator.chamber} - {legislator.name} ({legislator.party})")
        print(f"   Party Loyalty: {legislator.party_loyalty:.2f}")
        print(f"   Final Reputation: {legislator.reputation:.2f}")
        print(f"   Voter Approval: {legislator.voter_approval:.1%}")
        print(f"   Captured by Special Interest: {'Yes' if legislator.captured_by_special_interest else 'No'}")
        print(f"   Top Trusted Allies: {format_trust(legislator.top_trusted(3))}")
        print(f"   Least Trusted: {format_trust(legislator.least_trusted(3))}\n")


def legislator_rows(legislators) -> pd.DataFrame:
    rows = []
    for a in legislators:
        trust = list(a.trust_levels.values())
        rows.append(
            dict(
                name=a.name,
                chamber=a.chamber,
                party=a.party,
                party_loyalty=a.party_loyalty,
                reelection_concern=a.reelection_concern,
                captured=a.captured_by_special_interest,
                reputation=a.reputation,
                voter_approval=a.voter_approval,
                trust_mean=float(np.mean(trust)) if trust else 0.0,
                broken_ties=sum(1 for t in trust if t == 0.0),
                top_trusted=format_trust(a.top_trusted(3)),
            )
        )
    return pd.DataFrame(rows)


def save_results(model: CongressModel, output: str) -> None:
    os.makedirs(output, exist_ok=True)
    history = model.datacollector.get_model_vars_dataframe()
    for k, v in model.run_metadata.items():
        history[f"meta_{k}"] = str(v) if isinstance(v, dict) else v
    history.to_csv(os.path.join(output, "round_history.csv"), index_label="round")
    legislator_rows(model.legislators).to_csv(os.path.join(output, "legislator_summary.csv"), index=False)
    events = pd.DataFrame(
        [dict(tag=tag, first=payload[0], second=payload[1]) for tag, payload in model.event_log],
        columns=["tag", "first", "second"],
    )
    events.to_csv(os.path.join(output, "event_log.csv"), index=False)
    print(
        f"Datos guardados en {output}/round_history.csv, "
        f"{output}/legislator_summary.csv y {output}/event_log.csv"
    )


def main(argv=None) -> int:
    args = parser.parse_args(argv)
    if args.sessions < 1:
        parser.error("--sessions must be at least 1")

    pressures = dict(DEFAULT_PARTY_PRESSURES)
    try:
        pressures.update(parse_pressures(args.lobby))
    except ValueError as e:
        parser.error(str(e))

    try:
        model = CongressModel(
            seed=args.seed,
            composition=args.composition,
            lobby_group=LobbyGroup(pressures),
            capture_probability=args.captureprobability,
            deal_probability=args.dealprobability,
            betrayal_probability=args.betrayalprobability,
        )
    except ValueError as e:
        parser.error(str(e))

    print(f"Iniciando simulación: {len(model.legislators)} legisladores, composición={args.composition}")

    for _ in range(args.sessions * len(model.docket)):
        model.step()
        show_round(model.last_result)

    passed = sum(1 for tag, payload in model.event_log if tag == "round" and payload[1])
    print(f"\nProyectos aprobados: {passed}/{model.round_count}")
    m = model.last_metrics
    print(
        f"Reputación media={m.get('reputation_mean', 0.0):.3f} "
        f"Aprobación media={m.get('approval_mean', 0.0):.3f} "
        f"Confianza media={m.get('trust_mean', 0.0):.3f} "
        f"Bloque aliado mayor={m.get('largest_bloc', 0.0):.0f}"
    )

    listed = model.legislators if args.summary < 0 else model.legislators[: args.summary]
    show_legislator_summary(listed)

    if not args.nosave:
        save_results(model, args.output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
