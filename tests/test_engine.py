from dataclasses import replace

import pytest

from classes import (DIFFICULTY_PROFILES, FlipOutcome, MatchEngine, MatchState, Phase,
                     ScoringPolicy, generate_deck)


@pytest.fixture()
def engine():
    return MatchEngine()


@pytest.fixture()
def state(engine):
    # Unshuffled: ids 1,2 are 'people', 3,4 'plus', 5,6 'check'
    return engine.new_game(generate_deck(3), DIFFICULTY_PROFILES["easy"])


def test_new_game_is_playing_with_nothing_selected(state):
    assert state.phase is Phase.PLAYING
    assert state.match_state is MatchState.IDLE
    assert state.total_pairs == 3
    assert state.card(1).value == 'people'
    assert state.card(99) is None


def test_first_flip_selects_without_counting_a_move(engine, state):
    state, outcome = engine.flip(state, 1)
    assert outcome is FlipOutcome.FIRST_CARD
    assert state.match_state is MatchState.ONE_SELECTED
    assert state.card(1).is_flipped
    assert state.flipped_card_ids == (1,)
    assert state.move_count == 0
    assert state.score == 0


@pytest.mark.parametrize("second, outcome", [
    (2, FlipOutcome.MATCH_PENDING),
    (3, FlipOutcome.MISMATCH_PENDING),
])
def test_second_flip_counts_a_move_and_starts_resolving(engine, state, second, outcome):
    state, _ = engine.flip(state, 1)
    state, result = engine.flip(state, second)
    assert result is outcome
    assert state.phase is Phase.RESOLVING
    assert state.move_count == 1
    assert state.flipped_card_ids == (1, second)


def test_rejected_flips_leave_state_untouched(engine, state):
    idle = replace(state, phase=Phase.IDLE)
    assert engine.flip(idle, 1) == (idle, FlipOutcome.REJECTED)

    assert engine.flip(state, 42) == (state, FlipOutcome.REJECTED)

    one, _ = engine.flip(state, 1)
    assert engine.flip(one, 1) == (one, FlipOutcome.REJECTED)

    resolving, _ = engine.flip(one, 3)
    assert engine.flip(resolving, 5) == (resolving, FlipOutcome.REJECTED)


def test_resolve_match_scores_and_clears_selection(engine, state):
    state, _ = engine.flip(state, 1)
    state, _ = engine.flip(state, 2)
    state = engine.resolve_match(state, (1, 2), remaining_seconds=60)

    assert state.card(1).is_matched and state.card(2).is_matched
    assert state.card(1).is_flipped
    assert state.matched_pair_count == 1
    assert state.score == 130
    assert state.flipped_card_ids == ()
    assert state.phase is Phase.PLAYING

    # Matched cards cannot be flipped again
    assert engine.flip(state, 1)[1] is FlipOutcome.REJECTED


def test_resolution_for_another_pair_is_a_no_op(engine, state):
    state, _ = engine.flip(state, 1)
    state, _ = engine.flip(state, 2)
    assert engine.resolve_match(state, (3, 4)) is state
    assert engine.reveal_mismatch(state, (1, 2)) is state
    assert engine.hide_mismatch(state, (1, 2)) is state


def test_mismatch_is_revealed_then_hidden(engine, state):
    state, _ = engine.flip(state, 1)
    state, _ = engine.flip(state, 3)

    # Flip-back is only possible after the reveal
    assert engine.hide_mismatch(state, (1, 3)) is state

    state = engine.reveal_mismatch(state, (1, 3))
    assert state.card(1).is_mismatched and state.card(3).is_mismatched
    assert state.phase is Phase.RESOLVING
    assert engine.reveal_mismatch(state, (1, 3)) is state

    state = engine.hide_mismatch(state, (1, 3))
    for card_id in (1, 3):
        assert not state.card(card_id).is_flipped
        assert not state.card(card_id).is_mismatched
    assert state.flipped_card_ids == ()
    assert state.match_state is MatchState.IDLE


def test_mismatch_penalty_is_floored_at_zero(engine, state):
    state, _ = engine.flip(state, 1)
    state, _ = engine.flip(state, 3)
    state = engine.reveal_mismatch(state, (1, 3))
    assert state.score == 0


def test_last_match_completes_the_game(engine, state):
    for pair in ((1, 2), (3, 4), (5, 6)):
        state, _ = engine.flip(state, pair[0])
        state, _ = engine.flip(state, pair[1])
        state = engine.resolve_match(state, pair)

    assert state.phase is Phase.COMPLETE
    assert state.match_state is MatchState.COMPLETE
    assert state.won
    assert state.matched_pair_count == state.total_pairs
    assert state.score == 300


def test_expire_ends_a_running_game_as_a_loss(engine, state):
    state = engine.expire(state)
    assert state.phase is Phase.COMPLETE
    assert not state.won
    assert engine.expire(state) is state


def test_custom_scoring_policy():
    engine = MatchEngine(ScoringPolicy(match_bonus=10, mismatch_penalty=1, time_bonus_divisor=0))
    assert engine.policy.match_points(80) == 10
    assert engine.policy.apply_penalty(5) == 4
    assert ScoringPolicy().match_points(None) == 100
    assert ScoringPolicy().match_points(45) == 122
