import logging
import random
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

import config
from scheduler import Scheduler
from shared.models import DIFFICULTY_LEVELS, HighScoreRecord, ScoreServiceError

logger = logging.getLogger(__name__)

# Ordered symbol alphabet; decks always use a prefix of it
SYMBOL_ALPHABET = (
    'people', 'plus', 'check', 'eye', 'star',
    'heart', 'bell', 'cloud', 'lightning', 'moon',
    'sun', 'globe', 'code', 'music', 'camera',
    'gift', 'shield', 'fire', 'puzzle', 'cake',
)


@dataclass(frozen=True)
class Card:
    """
    A memory card.

    Cards are immutable values addressed by their id. The match engine never
    changes a card in place; it replaces it with an updated copy.
    """
    id: int
    value: str
    is_flipped: bool = False
    is_matched: bool = False
    is_mismatched: bool = False

    def __str__(self):
        """Return a string representation of the card."""
        status = ("matched" if self.is_matched
                  else "mismatched" if self.is_mismatched
                  else "face up" if self.is_flipped
                  else "face down")
        return f"Card({self.id}, {self.value}, {status})"


@dataclass(frozen=True)
class DifficultyProfile:
    level: str
    pair_count: int
    starting_time_seconds: int
    rows: int
    cols: int

    @property
    def grid_dimensions(self) -> Tuple[int, int]:
        return (self.rows, self.cols)


DIFFICULTY_PROFILES: Mapping[str, DifficultyProfile] = {
    "easy": DifficultyProfile("easy", pair_count=6, starting_time_seconds=60, rows=3, cols=4),
    "medium": DifficultyProfile("medium", pair_count=12, starting_time_seconds=90, rows=4, cols=6),
    "hard": DifficultyProfile("hard", pair_count=20, starting_time_seconds=120, rows=5, cols=8),
}


def get_difficulty_profile(level: str) -> DifficultyProfile:
    """
    Look up the profile for a difficulty level.

    Raises:
        ValueError: if the level is not one of easy, medium, hard
    """
    if level not in DIFFICULTY_LEVELS:
        raise ValueError(f"Unknown difficulty level: {level!r}")
    return DIFFICULTY_PROFILES[level]


def generate_deck(pair_count: int) -> List[Card]:
    """
    Build an unshuffled deck of paired cards.

    Args:
        pair_count: Number of pairs wanted. Clamped to [1, len(SYMBOL_ALPHABET)];
            asking for more pairs than there are symbols yields one pair per symbol.

    Returns:
        2 * pair_count cards with ids 1..2n, two per symbol, in alphabet order
    """
    pairs = max(1, min(pair_count, len(SYMBOL_ALPHABET)))

    cards = []
    next_id = 1
    for value in SYMBOL_ALPHABET[:pairs]:
        for _ in range(2):
            cards.append(Card(id=next_id, value=value))
            next_id += 1
    return cards


def shuffle_deck(deck: Sequence[Card], rng=None) -> List[Card]:
    """
    Fisher-Yates shuffle into a new list; the input is left untouched.

    Args:
        deck: Cards to shuffle
        rng: Optional random source with randint(); defaults to the random module
    """
    rng = rng or random
    shuffled = list(deck)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def format_time(seconds) -> str:
    """Format seconds as MM:SS."""
    minutes, secs = divmod(max(0, int(seconds)), 60)
    return f"{minutes:02d}:{secs:02d}"


class ClockMode(Enum):
    COUNTDOWN = "countdown"
    COUNT_UP = "count_up"


class GameClock:
    """
    A countdown or count-up game timer.

    The clock does not measure real time: each tick() moves it by one second.
    Whoever owns the clock decides when ticks happen.
    """

    def __init__(self, starting_value=0, mode=ClockMode.COUNTDOWN):
        self.mode = mode
        self.starting_value = starting_value
        self.value = starting_value if mode is ClockMode.COUNTDOWN else 0
        self.running = False
        self._expired = False

    def start(self):
        self.running = True

    def stop(self):
        self.running = False

    def reset(self, starting_value=None):
        """Stop the clock and return it to its starting value."""
        if starting_value is not None:
            self.starting_value = starting_value
        self.running = False
        self._expired = False
        self.value = self.starting_value if self.mode is ClockMode.COUNTDOWN else 0

    def tick(self) -> bool:
        """
        Advance the clock by one second.

        Returns:
            True exactly once per reset: on the tick that takes a countdown to 0
            (or the first tick made while it already reads 0)
        """
        if not self.running:
            return False
        if self.mode is ClockMode.COUNT_UP:
            self.value += 1
            return False

        if self.value > 0:
            self.value -= 1
        if self.value == 0 and not self._expired:
            self._expired = True
            return True
        return False

    @property
    def expired(self) -> bool:
        return self._expired

    @property
    def remaining(self) -> Optional[int]:
        """Seconds left on a countdown; None for a count-up clock."""
        return self.value if self.mode is ClockMode.COUNTDOWN else None

    def time_spent(self) -> int:
        if self.mode is ClockMode.COUNTDOWN:
            return self.starting_value - self.value
        return self.value


@dataclass(frozen=True)
class ScoringPolicy:
    match_bonus: int = config.MATCH_BONUS
    mismatch_penalty: int = config.MISMATCH_PENALTY
    time_bonus_divisor: int = config.TIME_BONUS_DIVISOR

    def match_points(self, remaining_seconds: Optional[int] = None) -> int:
        """Flat bonus, plus half the remaining seconds on a countdown."""
        if remaining_seconds is None or not self.time_bonus_divisor:
            return self.match_bonus
        return self.match_bonus + remaining_seconds // self.time_bonus_divisor

    def apply_penalty(self, score: int) -> int:
        return max(0, score - self.mismatch_penalty)


class Phase(Enum):
    IDLE = "idle"
    PLAYING = "playing"
    RESOLVING = "resolving"
    COMPLETE = "complete"


class MatchState(Enum):
    IDLE = "idle"
    ONE_SELECTED = "one_selected"
    RESOLVING = "resolving"
    COMPLETE = "complete"


class FlipOutcome(Enum):
    REJECTED = "rejected"
    FIRST_CARD = "first_card"
    MATCH_PENDING = "match_pending"
    MISMATCH_PENDING = "mismatch_pending"


@dataclass(frozen=True)
class SessionState:
    """Everything the match engine needs to know about one game."""
    cards: Tuple[Card, ...] = ()
    difficulty: DifficultyProfile = DIFFICULTY_PROFILES[config.DEFAULT_DIFFICULTY]
    flipped_card_ids: Tuple[int, ...] = ()
    matched_pair_count: int = 0
    move_count: int = 0
    score: int = 0
    phase: Phase = Phase.IDLE
    won: bool = False
    # card id -> index in cards; positions never change during a game
    positions: Mapping[int, int] = field(default_factory=dict, compare=False, repr=False)

    @property
    def total_pairs(self) -> int:
        return len(self.cards) // 2

    @property
    def match_state(self) -> MatchState:
        if self.phase is Phase.COMPLETE:
            return MatchState.COMPLETE
        if self.phase is Phase.RESOLVING:
            return MatchState.RESOLVING
        if len(self.flipped_card_ids) == 1:
            return MatchState.ONE_SELECTED
        return MatchState.IDLE

    def card(self, card_id: int) -> Optional[Card]:
        index = self.positions.get(card_id)
        return self.cards[index] if index is not None else None

    def with_cards(self, updated: Sequence[Card]) -> "SessionState":
        """Return a copy with the given cards swapped in at their positions."""
        cards = list(self.cards)
        for card in updated:
            cards[self.positions[card.id]] = card
        return replace(self, cards=tuple(cards))


class MatchEngine:
    """
    The flip/match state machine.

    Every method is a pure function of (state, event) -> state. Resolution
    steps only apply while the state is still resolving the exact pair they
    were created for; otherwise they return the state unchanged.
    """

    def __init__(self, policy: Optional[ScoringPolicy] = None):
        self.policy = policy or ScoringPolicy()

    def new_game(self, deck: Sequence[Card], difficulty: DifficultyProfile) -> SessionState:
        cards = tuple(deck)
        return SessionState(
            cards=cards,
            difficulty=difficulty,
            phase=Phase.PLAYING,
            positions={card.id: index for index, card in enumerate(cards)},
        )

    def can_flip(self, state: SessionState, card_id: int) -> bool:
        if state.phase is not Phase.PLAYING or len(state.flipped_card_ids) >= 2:
            return False
        card = state.card(card_id)
        return card is not None and not card.is_flipped and not card.is_matched

    def flip(self, state: SessionState, card_id: int) -> Tuple[SessionState, FlipOutcome]:
        """
        Turn a card face up.

        Returns:
            The next state and what the flip started. Rejected flips return
            the state they were given.
        """
        if not self.can_flip(state, card_id):
            return state, FlipOutcome.REJECTED

        card = replace(state.card(card_id), is_flipped=True, is_mismatched=False)
        flipped_ids = state.flipped_card_ids + (card_id,)
        state = replace(state.with_cards([card]), flipped_card_ids=flipped_ids)

        if len(flipped_ids) == 1:
            return state, FlipOutcome.FIRST_CARD

        first = state.card(flipped_ids[0])
        state = replace(state, move_count=state.move_count + 1, phase=Phase.RESOLVING)
        if first.value == card.value:
            return state, FlipOutcome.MATCH_PENDING
        return state, FlipOutcome.MISMATCH_PENDING

    def _resolving(self, state: SessionState, pair: Tuple[int, int]) -> bool:
        return state.phase is Phase.RESOLVING and state.flipped_card_ids == tuple(pair)

    def resolve_match(self, state: SessionState, pair: Tuple[int, int],
                      remaining_seconds: Optional[int] = None) -> SessionState:
        """Lock in a matching pair; completes the game when it was the last one."""
        if not self._resolving(state, pair):
            return state
        first, second = (state.card(card_id) for card_id in pair)
        if first.value != second.value:
            return state

        matched = [replace(card, is_flipped=True, is_matched=True, is_mismatched=False)
                   for card in (first, second)]
        matched_pairs = state.matched_pair_count + 1
        # Win detection happens here and nowhere else
        complete = matched_pairs == state.total_pairs
        return replace(
            state.with_cards(matched),
            flipped_card_ids=(),
            matched_pair_count=matched_pairs,
            score=state.score + self.policy.match_points(remaining_seconds),
            phase=Phase.COMPLETE if complete else Phase.PLAYING,
            won=complete,
        )

    def reveal_mismatch(self, state: SessionState, pair: Tuple[int, int]) -> SessionState:
        """Mark a non-matching pair and apply the penalty; the cards stay face up."""
        if not self._resolving(state, pair):
            return state
        first, second = (state.card(card_id) for card_id in pair)
        if first.value == second.value or first.is_mismatched or second.is_mismatched:
            return state

        marked = [replace(card, is_mismatched=True) for card in (first, second)]
        return replace(
            state.with_cards(marked),
            score=self.policy.apply_penalty(state.score),
        )

    def hide_mismatch(self, state: SessionState, pair: Tuple[int, int]) -> SessionState:
        """Turn a revealed mismatch face down and accept flips again."""
        if not self._resolving(state, pair):
            return state
        cards = [state.card(card_id) for card_id in pair]
        if not all(card.is_mismatched for card in cards):
            return state

        hidden = [replace(card, is_flipped=False, is_mismatched=False) for card in cards]
        return replace(
            state.with_cards(hidden),
            flipped_card_ids=(),
            phase=Phase.PLAYING,
        )

    def expire(self, state: SessionState) -> SessionState:
        """End a running game because time ran out."""
        if state.phase not in (Phase.PLAYING, Phase.RESOLVING):
            return state
        return replace(state, phase=Phase.COMPLETE, won=False)


@dataclass(frozen=True)
class GameSnapshot:
    """Read-only view of a session for the presentation layer."""
    cards: Tuple[Card, ...]
    phase: Phase
    match_state: MatchState
    score: int
    moves: int
    time: int
    matched_pairs: int
    total_pairs: int
    difficulty: DifficultyProfile
    won: bool
    clock_running: bool
    submission_notice: Optional[str] = None

    def card_at(self, row: int, col: int) -> Optional[Card]:
        """
        Get the card at a grid position.

        Returns:
            Card at the position or None if the position is outside the deck
        """
        if 0 <= row < self.difficulty.rows and 0 <= col < self.difficulty.cols:
            index = row * self.difficulty.cols + col
            if index < len(self.cards):
                return self.cards[index]
        return None


EVENTS = ("flip", "match", "mismatch", "win", "time_up")


class GameSession:
    """
    Main game class that orchestrates the memory card game.

    The session owns the deck, the clock and the current SessionState. It is
    driven by the host loop: flip() for player input and update() every frame,
    which runs due reveal/flip-back steps and one clock tick per second.
    Presentation code reads snapshot() and may subscribe to events with on().
    """

    def __init__(self, difficulty=config.DEFAULT_DIFFICULTY, player_name="",
                 clock_mode=ClockMode.COUNTDOWN, score_service=None,
                 engine: Optional[MatchEngine] = None,
                 reveal_delay=config.REVEAL_DELAY_SEC,
                 flip_back_delay=config.FLIP_BACK_DELAY_SEC,
                 rng=None, time_source: Callable[[], float] = time.monotonic):
        """
        Initialize a new game session.

        Args:
            difficulty: Level used by the next start_game()
            player_name: Name submitted with high scores
            clock_mode: Countdown from the difficulty's starting time, or count-up
            score_service: Optional high-score collaborator with submit(record)
            engine: Match engine, e.g. one with a custom ScoringPolicy
            reveal_delay: Seconds both faces stay up before a pair is resolved
            flip_back_delay: Seconds a mismatch stays marked before flipping back
            rng: Random source used to shuffle decks
            time_source: Monotonic clock in seconds, used when callers pass no `now`
        """
        self.difficulty = get_difficulty_profile(difficulty)
        self.player_name = player_name
        self.score_service = score_service
        self.engine = engine or MatchEngine()
        self.reveal_delay = reveal_delay
        self.flip_back_delay = flip_back_delay
        self.rng = rng
        self._time_source = time_source

        self.scheduler = Scheduler()
        self.clock = GameClock(self.difficulty.starting_time_seconds, clock_mode)
        self.state = SessionState(difficulty=self.difficulty)
        self._next_tick_at: Optional[float] = None
        self._listeners: Dict[str, List[Callable]] = {name: [] for name in EVENTS}

        self.last_record: Optional[HighScoreRecord] = None
        self.submission_notice: Optional[str] = None

    @property
    def generation(self) -> int:
        return self.scheduler.generation

    @property
    def is_playing(self) -> bool:
        return self.state.phase in (Phase.PLAYING, Phase.RESOLVING)

    def _now(self, now: Optional[float]) -> float:
        return self._time_source() if now is None else now

    def on(self, event: str, callback: Callable) -> Callable:
        """
        Subscribe to a game event.

        Events and their argument: flip (Card), match (pair of Cards),
        mismatch (pair of Cards), win (HighScoreRecord), time_up (GameSnapshot).
        """
        if event not in self._listeners:
            raise ValueError(f"Unknown event: {event!r}")
        self._listeners[event].append(callback)
        return callback

    def _emit(self, event: str, payload) -> None:
        for callback in list(self._listeners[event]):
            try:
                callback(payload)
            except Exception:
                logger.exception("Listener for %r failed", event)

    def start_game(self, difficulty: Optional[str] = None, now: Optional[float] = None) -> GameSnapshot:
        """Deal a fresh shuffled deck and start the clock."""
        if difficulty is not None:
            self.difficulty = get_difficulty_profile(difficulty)
        now = self._now(now)

        # Anything still scheduled belongs to the previous deck
        self.scheduler.invalidate()

        deck = shuffle_deck(generate_deck(self.difficulty.pair_count), self.rng)
        self.state = self.engine.new_game(deck, self.difficulty)
        self.clock.reset(self.difficulty.starting_time_seconds)
        self.clock.start()
        self._next_tick_at = now + 1
        self.last_record = None
        self.submission_notice = None

        logger.info("Started %s game (%d pairs, generation %d)",
                    self.difficulty.level, self.state.total_pairs, self.generation)
        return self.snapshot()

    def reset_game(self, now: Optional[float] = None) -> GameSnapshot:
        """Restart with the current difficulty."""
        if self.is_playing:
            self.clock.stop()
        return self.start_game(now=now)

    def set_difficulty(self, level: str) -> bool:
        """
        Choose the difficulty for the next game.

        Returns:
            False, leaving the difficulty unchanged, while a game is in progress
        """
        profile = get_difficulty_profile(level)
        if self.is_playing:
            logger.debug("Ignoring difficulty change to %s during a game", level)
            return False

        self.difficulty = profile
        if self.state.phase is Phase.IDLE:
            self.state = replace(self.state, difficulty=profile)
            self.clock.reset(profile.starting_time_seconds)
        return True

    def flip(self, card_id: int, now: Optional[float] = None) -> bool:
        """
        Flip a card and schedule the resolution of a completed pair.

        Returns:
            True if the flip was accepted; invalid flips are ignored
        """
        now = self._now(now)
        self.update(now)

        state, outcome = self.engine.flip(self.state, card_id)
        if outcome is FlipOutcome.REJECTED:
            logger.debug("Ignored flip of card %s in %s", card_id, self.state.match_state.value)
            return False

        self.state = state
        self._emit("flip", state.card(card_id))

        pair = state.flipped_card_ids
        if outcome is FlipOutcome.MATCH_PENDING:
            remaining = self.clock.remaining
            self.scheduler.schedule(
                now, self.reveal_delay,
                lambda: self._resolve_match(pair, remaining),
                name="match")
        elif outcome is FlipOutcome.MISMATCH_PENDING:
            revealed_at = now + self.reveal_delay
            self.scheduler.schedule(
                now, self.reveal_delay,
                lambda: self._reveal_mismatch(pair, revealed_at),
                name="reveal-mismatch")
        return True

    def _resolve_match(self, pair, remaining) -> None:
        previous = self.state
        self.state = self.engine.resolve_match(previous, pair, remaining)
        if self.state is previous:
            return

        self._emit("match", tuple(self.state.card(card_id) for card_id in pair))
        if self.state.phase is Phase.COMPLETE and previous.phase is not Phase.COMPLETE:
            self._complete()

    def _reveal_mismatch(self, pair, revealed_at: float) -> None:
        previous = self.state
        self.state = self.engine.reveal_mismatch(previous, pair)
        if self.state is previous:
            return

        self._emit("mismatch", tuple(self.state.card(card_id) for card_id in pair))
        self.scheduler.schedule(
            revealed_at, self.flip_back_delay,
            lambda: self._hide_mismatch(pair),
            name="flip-back")

    def _hide_mismatch(self, pair) -> None:
        self.state = self.engine.hide_mismatch(self.state, pair)

    def _complete(self) -> None:
        # Stop the clock before anything else can tick it
        self.clock.stop()
        self._next_tick_at = None

        record = HighScoreRecord(
            username=self.player_name,
            score=self.state.score,
            moves=self.state.move_count,
            time=self.clock.time_spent(),
            difficulty=self.difficulty.level,
        )
        self.last_record = record
        logger.info("Game complete: score=%d moves=%d time=%ds",
                    record.score, record.moves, record.time)
        self._emit("win", record)
        self._submit(record)

    def _submit(self, record: HighScoreRecord) -> None:
        if self.score_service is None:
            return
        if not record.username.strip():
            self.submission_notice = "Enter a player name to save your score"
            return
        try:
            self.last_record = self.score_service.submit(record)
        except ScoreServiceError as e:
            logger.warning("High score submission failed: %s", e)
            self.submission_notice = f"Could not save high score: {e}"
        else:
            self.submission_notice = "High score saved!"

    def _tick(self) -> None:
        if not self.clock.tick():
            return
        if self.is_playing:
            self.scheduler.invalidate()
            self.clock.stop()
            self._next_tick_at = None
            self.state = self.engine.expire(self.state)
            logger.info("Time is up with %d of %d pairs found",
                        self.state.matched_pair_count, self.state.total_pairs)
            self._emit("time_up", self.snapshot())

    def update(self, now: Optional[float] = None) -> bool:
        """
        Update game state - should be called regularly in a game loop.

        Due callbacks and clock ticks are applied in time order.

        Returns:
            True if anything was processed, False otherwise
        """
        now = self._now(now)
        processed = False
        while True:
            timer_due = self.scheduler.next_due()
            tick_due = self._next_tick_at if self.clock.running else None
            if timer_due is not None and timer_due <= now and (tick_due is None or timer_due <= tick_due):
                self.scheduler.run_next(now)
            elif tick_due is not None and tick_due <= now:
                self._next_tick_at = tick_due + 1
                self._tick()
            else:
                return processed
            processed = True

    def snapshot(self) -> GameSnapshot:
        state = self.state
        return GameSnapshot(
            cards=state.cards,
            phase=state.phase,
            match_state=state.match_state,
            score=state.score,
            moves=state.move_count,
            time=self.clock.value,
            matched_pairs=state.matched_pair_count,
            total_pairs=state.total_pairs or state.difficulty.pair_count,
            difficulty=state.difficulty,
            won=state.won,
            clock_running=self.clock.running,
            submission_notice=self.submission_notice,
        )

    def __str__(self) -> str:
        """Return a string representation of the game state."""
        state = self.state
        return (f"Game {state.phase.value}: score={state.score} moves={state.move_count} "
                f"pairs={state.matched_pair_count}/{state.total_pairs} "
                f"time={format_time(self.clock.value)}")
