#!/usr/bin/env python3
"""Tallies and round orchestration."""
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import pytest

from lobby import LobbyGroup
from model import Bill, CongressModel, VoteTally


def test_tally_counts_by_party():
    """Test that votes are counted per party and in total."""
    tally = VoteTally()
    for _ in range(4):
        tally.record_vote("Democrat", True)
    for _ in range(3):
        tally.record_vote("Democrat", False)
    tally.record_vote("Green", False)
    assert tally.party_results == {"Democrat": (4, 3), "Green": (0, 1)}
    assert tally.total_yes == 4
    assert tally.total_no == 4
    assert tally.total_yes + tally.total_no == 8


def test_majority_passes_chamber():
    """Test that a strict majority carries the chamber."""
    tally = VoteTally()
    for vote in (True, True, True, False, False):
        tally.record_vote("Democrat", vote)
    assert tally.passed is True


def test_tie_fails_chamber():
    """Test that a tie, or no votes at all, does not carry the chamber."""
    tally = VoteTally()
    for vote in (True, True, False, False):
        tally.record_vote("Democrat", vote)
    assert tally.passed is False
    assert VoteTally().passed is False


def test_bill_stances_are_read_only():
    """Test that a bill keeps its own copy of the stances and refuses edits."""
    stances = {"Democrat": 0.8}
    bill = Bill("Read Only", stances)
    stances["Democrat"] = 0.1
    assert bill.stance_for("Democrat") == 0.8
    assert bill.stance_for("Green") == 0.5
    with pytest.raises(TypeError):
        bill.stances["Democrat"] = 0.2


def fixed_vote_model(house, senate):
    """Democrats always vote yes and Republicans always vote no."""
    model = CongressModel(
        seed=2,
        composition="empty",
        lobby_group=LobbyGroup({"Democrat": 1.0, "Republican": -1.0}),
        deal_probability=0.0,
        betrayal_probability=0.0,
    )
    for chamber, counts in (("House", house), ("Senate", senate)):
        for party, count in counts.items():
            for i in range(count):
                model.add_legislator(f"{party} {chamber} {i}", chamber, party, party_loyalty=1.0,
                                     reelection_concern=0.0, captured_by_special_interest=False)
    model.initialize_trust()
    return model


def test_bill_needs_both_chambers():
    """Test that a House majority alone does not pass the bill."""
    model = fixed_vote_model({"Democrat": 3, "Republican": 2}, {"Democrat": 2, "Republican": 2})
    result = model.run_round(Bill("Split", {"Democrat": 0.5, "Republican": 0.5}))
    assert (result.house.total_yes, result.house.total_no) == (3, 2)
    assert (result.senate.total_yes, result.senate.total_no) == (2, 2)
    assert result.house.passed is True
    assert result.senate.passed is False
    assert result.passed is False


def test_bill_passes_with_both_majorities():
    """Test that majorities in both chambers pass the bill."""
    model = fixed_vote_model({"Democrat": 3, "Republican": 2}, {"Democrat": 3, "Republican": 1})
    result = model.run_round(Bill("Agreed", {"Democrat": 0.5, "Republican": 0.5}))
    assert result.house.party_results == {"Democrat": (3, 0), "Republican": (0, 2)}
    assert result.senate.party_results == {"Democrat": (3, 0), "Republican": (0, 1)}
    assert result.passed is True
    assert model.event_log[-1] == ("round", ("Agreed", True))


def test_round_records_social_phase():
    """Test that deals and betrayals of the round are logged and collected."""
    model = CongressModel(seed=4, composition="small", deal_probability=0.5, betrayal_probability=0.5)
    result = model.run_round(model.docket[0])
    assert len(result.deals) == sum(1 for tag, _ in model.event_log if tag == "deal")
    assert len(result.betrayals) == sum(1 for tag, _ in model.event_log if tag == "betrayal")
    df = model.datacollector.get_model_vars_dataframe()
    assert df["deals"].iloc[-1] == len(result.deals)
    if result.betrayals:
        assert df["broken_ties"].iloc[-1] > 0


def test_population_is_fixed_after_first_round():
    """Test that nobody joins once voting has started."""
    model = CongressModel(seed=4, composition="tiny")
    model.step()
    with pytest.raises(RuntimeError):
        model.add_legislator("Newcomer", "House", "Democrat")


def test_duplicate_names_are_rejected():
    """Test that legislator names stay unique."""
    model = CongressModel(seed=4, composition="tiny")
    with pytest.raises(ValueError):
        model.add_legislator("Democrat House Member 1", "House", "Democrat")


def test_late_member_joins_trust_network():
    """Test that a member added after bootstrap is trusted, and trusts, at 0.5."""
    model = CongressModel(seed=1, composition="tiny", deal_probability=1.0)
    newcomer = model.add_legislator("Newcomer", "House", "Democrat")
    others = [a for a in model.legislators if a is not newcomer]
    assert newcomer.trust_levels == {a.name: 0.5 for a in others}
    assert all(a.trust_levels["Newcomer"] == 0.5 for a in others)

    model.run_round(model.docket[0])
    model.run_round(model.docket[1])
    assert model.round_count == 2
    for a in model.legislators:
        assert len(a.trust_levels) == len(model.legislators) - 1
        assert a.name not in a.trust_levels


def test_late_member_survives_peer_influence():
    """Test that a second round reads every peer's trust without a reset."""
    model = CongressModel(seed=1, composition="tiny", deal_probability=0.0, betrayal_probability=0.0)
    model.add_legislator("Newcomer", "Senate", "Independent")
    first = model.run_round(model.docket[0])
    second = model.run_round(model.docket[1])
    assert first.senate.total_yes + first.senate.total_no == 6
    assert second.house.total_yes + second.house.total_no == 11


def test_trust_reset_refused_after_social_state():
    """Test that trust cannot be wiped once deals or rounds have happened."""
    model = CongressModel(seed=3, composition="tiny")
    a, b = model.legislators[:2]
    a.make_deal_with(b)
    with pytest.raises(RuntimeError):
        model.initialize_trust()
    assert a.trust_levels[b.name] == pytest.approx(0.6)

    quiet = CongressModel(seed=3, composition="tiny", deal_probability=0.0, betrayal_probability=0.0)
    quiet.step()
    with pytest.raises(RuntimeError):
        quiet.initialize_trust()


def test_out_of_sync_trust_map_is_rejected():
    """Test that a round refuses to start when a trust map lost or gained an entry."""
    model = CongressModel(seed=3, composition="tiny")
    first, second = model.legislators[:2]
    del first.trust_levels[second.name]
    with pytest.raises(ValueError):
        model.run_round(model.docket[0])
    assert model.round_count == 0

    first.trust_levels[second.name] = 0.5
    first.trust_levels[first.name] = 0.5
    with pytest.raises(ValueError):
        model.run_round(model.docket[0])


def test_extensible_party_set():
    """Test that parties beyond the default three vote and tally."""
    model = CongressModel(
        seed=8,
        composition="empty",
        house_members={"Democrat": 2, "Republican": 2, "Green": 2, "Libertarian": 1},
        senate_members={"Green": 1, "Libertarian": 2},
    )
    result = model.run_round(Bill("Carbon Tax", {"Green": 0.95, "Libertarian": 0.1}))
    assert set(result.house.party_results) == {"Democrat", "Republican", "Green", "Libertarian"}
    assert result.senate.total_yes + result.senate.total_no == 3
    assert model.get("Green House Member 1").lobby_pressure == 0.0


def test_same_seed_same_round():
    """Test that the same seed replays the same round."""
    results = []
    for _ in range(2):
        model = CongressModel(seed=123, composition="small")
        r = model.run_round(model.docket[1])
        results.append((r.house.party_results, r.senate.party_results, r.deals, r.betrayals))
    assert results[0] == results[1]


def test_empty_docket_stops_model():
    """Test that a model with nothing to vote on stops running."""
    model = CongressModel(seed=1, composition="tiny", docket=[])
    model.step()
    assert model.running is False
    assert model.round_count == 0


def main():
    """Run all tests."""
    print("="*60)
    print("ROUND TEST SUITE")
    print("="*60)
    print()

    tests = [
        test_tally_counts_by_party,
        test_majority_passes_chamber,
        test_tie_fails_chamber,
        test_bill_stances_are_read_only,
        test_bill_needs_both_chambers,
        test_bill_passes_with_both_majorities,
        test_round_records_social_phase,
        test_population_is_fixed_after_first_round,
        test_duplicate_names_are_rejected,
        test_late_member_joins_trust_network,
        test_late_member_survives_peer_influence,
        test_trust_reset_refused_after_social_state,
        test_out_of_sync_trust_map_is_rejected,
        test_extensible_party_set,
        test_same_seed_same_round,
        test_empty_docket_stops_model,
    ]

    results = []
    for test_func in tests:
        try:
            test_func()
            print(f"  ✓ {test_func.__name__}")
            results.append(True)
        except AssertionError as e:
            print(f"  ✗ {test_func.__name__}: {e}")
            results.append(False)

    print()
    print("="*60)
    passed = sum(results)
    total = len(results)
    print(f"Passed: {passed}/{total} ({passed/total*100:.0f}%)")
    return 0 if all(results) else 1


if __name__ == "__main__":
    sys.exit(main())
