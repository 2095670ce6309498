"""
Junction-memory maze navigation engine.

Decides, one step at a time, which absolute heading a maze mouse should face
using only the four neighbouring cell readings, its own position/heading and
the target coordinates. Junction decisions made on the first run are kept in
a bounded ledger and replayed on later runs of the same maze.
"""

# Standard library imports
import logging
import random
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Iterator, List, Mapping, Optional, Tuple, Union

__version__ = '20261019_1130'

LEDGER_CAPACITY = 10000

logger = logging.getLogger(__name__)

# Type aliases for clarity
Position = Tuple[int, int]  # (x, y), y grows towards SOUTH


class RelativeDirection(Enum):
    """Direction relative to the current heading, numbered clockwise."""
    AHEAD = 0
    RIGHT = 1
    BEHIND = 2
    LEFT = 3


class Heading(Enum):
    """Absolute compass heading, numbered clockwise from NORTH."""
    NORTH = 0
    EAST = 1
    SOUTH = 2
    WEST = 3

    def reverse(self) -> 'Heading':
        return Heading((self.value + 2) % 4)

    def rotate(self, relative: RelativeDirection) -> 'Heading':
        """Absolute heading of ``relative`` when facing ``self``."""
        return Heading((self.value + relative.value) % 4)

    def relative_to(self, facing: 'Heading') -> RelativeDirection:
        """Relative direction that points at ``self`` when facing ``facing``."""
        return RelativeDirection((self.value - facing.value) % 4)


class CellReading(Enum):
    WALL = 'wall'
    PASSAGE = 'passage'    # open, never entered
    VISITED = 'visited'    # open, entered before


class CellType(Enum):
    ENCLOSED = 0     # no open neighbour, only possible for a broken maze
    DEAD_END = 1
    CORRIDOR = 2
    JUNCTION = 3     # junctions and crossroads alike


class NavigationMode(Enum):
    EXPLORE = 'explore'
    BACKTRACK = 'backtrack'
    SEEK_TARGET = 'seek_target'


class LedgerDiscipline(Enum):
    """How the ledger is consulted while backtracking."""
    STACK = 'stack'              # pop the most recent junction
    COORDINATE = 'coordinate'    # scan for the junction at the current position


Readings = Mapping[RelativeDirection, CellReading]

# Scan order for every "first found" choice
SCAN_ORDER = (RelativeDirection.AHEAD, RelativeDirection.RIGHT, RelativeDirection.LEFT, RelativeDirection.BEHIND)
FORWARD_SCAN = SCAN_ORDER[:3]


def reverse_heading(heading: Heading) -> Heading:
    return heading.reverse()


def validate_readings(readings: Readings) -> Dict[RelativeDirection, CellReading]:
    """Check there is exactly one CellReading per RelativeDirection."""
    try:
        lcl_readings = {rel: readings[rel] for rel in RelativeDirection}
    except (KeyError, TypeError) as e:
        raise ValueError(f"Readings must cover all four relative directions, got {readings!r}") from e
    for rel, reading in lcl_readings.items():
        if not isinstance(reading, CellReading):
            raise ValueError(f"Invalid reading for {rel.name}: {reading!r}")
    return lcl_readings


def classify(readings: Readings) -> CellType:
    """Local topology from the number of non-wall neighbours."""
    exits = sum(1 for rel in RelativeDirection if readings[rel] is not CellReading.WALL)
    return CellType(min(exits, 3))


def count_unexplored(readings: Readings) -> int:
    return sum(1 for rel in RelativeDirection if readings[rel] is CellReading.PASSAGE)


def seek(position: Position, target: Position) -> Optional[Heading]:
    """
    Greedy compass step towards the target, closing the x-gap before the y-gap.

    Returns None once the position equals the target. Walls are not considered.
    """
    x, y = position
    tx, ty = target
    if x < tx:
        return Heading.EAST
    if x > tx:
        return Heading.WEST
    if y < ty:
        return Heading.SOUTH
    if y > ty:
        return Heading.NORTH
    return None


@dataclass(frozen=True)
class JunctionEntry:
    """One decision taken at a junction during the first run."""
    arrival: Heading
    position: Position
    chosen: Optional[Heading] = None


class JunctionLedger:
    """
    Bounded, ordered log of junction decisions.

    Contents survive run resets so later runs can replay them; only the
    replay cursor is rewound. ``clear`` is for a genuinely new maze.
    """

    def __init__(self, *, capacity: int = LEDGER_CAPACITY):
        if capacity < 1:
            raise ValueError(f"Ledger capacity must be positive, got {capacity}")
        self.capacity = capacity
        self.entries: List[JunctionEntry] = []
        self.cursor = 0
        self.dropped = 0

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[JunctionEntry]:
        return iter(self.entries)

    @property
    def is_full(self) -> bool:
        return len(self.entries) >= self.capacity

    @property
    def exhausted(self) -> bool:
        return self.cursor >= len(self.entries)

    def record(self, *, arrival: Heading, position: Position, chosen: Optional[Heading] = None) -> bool:
        """Append an entry. Returns False, leaving the ledger untouched, when full."""
        if self.is_full:
            if not self.dropped:
                logger.warning(f"Junction ledger full ({self.capacity} entries), no longer recording junctions")
            self.dropped += 1
            return False
        self.entries.append(JunctionEntry(arrival=arrival, position=tuple(position), chosen=chosen))
        return True

    def _index_of(self, position: Position, latest: bool) -> Optional[int]:
        lcl_position = tuple(position)
        indices = range(len(self.entries) - 1, -1, -1) if latest else range(len(self.entries))
        for index in indices:
            if self.entries[index].position == lcl_position:
                return index
        return None

    def lookup(self, *, position: Position, latest: bool = False) -> Optional[JunctionEntry]:
        """First entry recorded at ``position`` (or the most recent one with ``latest``)."""
        index = self._index_of(position, latest)
        return None if index is None else self.entries[index]

    def update(self, *, position: Position, chosen: Heading) -> bool:
        """Point the latest entry at ``position`` to a new branch."""
        index = self._index_of(position, latest=True)
        if index is None:
            return False
        self.entries[index] = replace(self.entries[index], chosen=chosen)
        return True

    def last(self) -> Optional[JunctionEntry]:
        return self.entries[-1] if self.entries else None

    def pop_last(self) -> Optional[JunctionEntry]:
        if not self.entries:
            return None
        entry = self.entries.pop()
        self.cursor = min(self.cursor, len(self.entries))
        return entry

    def advance_to(self, *, position: Position) -> Optional[JunctionEntry]:
        """
        Next entry at ``position`` from the replay cursor on, moving the cursor past it.

        Entries skipped on the way belong to branches that were backed out
        of. The cursor does not move when no such entry is left.
        """
        lcl_position = tuple(position)
        for index in range(self.cursor, len(self.entries)):
            if self.entries[index].position == lcl_position:
                self.cursor = index + 1
                return self.entries[index]
        return None

    def reset_cursor(self):
        self.cursor = 0

    def clear(self):
        self.entries.clear()
        self.cursor = 0
        self.dropped = 0


class JunctionEngine:
    """
    Explore / backtrack / seek-target state machine for one maze attempt.

    Construct once per maze, call ``step`` once per control cycle and
    ``on_run_reset`` between runs. The engine owns the ledger and the mode;
    nothing else should mutate them.

    The first run explores depth first: it only ever steps into passages,
    and turns back wherever none is left, so the junctions it still has to
    return to are exactly the ones in the ledger. Later runs replay the
    recorded junction choices in order and, once the ledger is used up,
    steer towards the target. If replay meets a junction the ledger has no
    entry for, the rest of that run explores like the first one, keeping
    its junctions in a scratch ledger so the maze's ledger stays as it was.
    """

    def __init__(
        self, *,
        discipline: Union[LedgerDiscipline, str] = LedgerDiscipline.STACK,
        capacity: int = LEDGER_CAPACITY,
        rng: Optional[random.Random] = None,
        seed: Optional[int] = None,
    ):
        try:
            self.discipline = LedgerDiscipline(discipline)
        except ValueError as e:
            raise ValueError(f"Unknown ledger discipline: {discipline!r}") from e
        self.ledger = JunctionLedger(capacity=capacity)
        self.rng = rng if rng is not None else random.Random(seed)
        self.mode = NavigationMode.EXPLORE

        # Per-run state, zeroed by on_run_reset
        self.steps = 0
        self.start_position: Optional[Position] = None
        self.replay_abandoned = False
        # ledger written and consulted by this run's explore and backtrack steps
        self._working = self.ledger

        self.runs = 0
        self.logger = logger
        self.logger.debug(f"JunctionEngine instantiated, discipline={self.discipline.value}, capacity={capacity}")

    # === Lifecycle ===

    def on_run_reset(self, *, new_maze: bool = False):
        """Zero per-run state; keep the ledger unless a new maze begins."""
        self.mode = NavigationMode.EXPLORE
        self.steps = 0
        self.start_position = None
        self.replay_abandoned = False
        self.ledger.reset_cursor()
        if new_maze:
            self.ledger.clear()
            self.runs = 0
            self._working = self.ledger
        else:
            self.runs += 1
            self._working = JunctionLedger(capacity=self.ledger.capacity)
        self.logger.info(f"Run reset (new_maze={new_maze}), ledger keeps {len(self.ledger)} junctions")

    def get_status(self) -> Dict:
        return {
            "mode": self.mode.value,
            "discipline": self.discipline.value,
            "junctions": len(self.ledger),
            "cursor": self.ledger.cursor,
            "dropped": self.ledger.dropped,
            "replay_abandoned": self.replay_abandoned,
            "steps": self.steps,
            "runs": self.runs,
        }

    # === Decision ===

    def step(
        self, *,
        readings: Readings,
        position: Position,
        heading: Heading,
        target: Position,
        is_first_run: bool,
    ) -> Heading:
        """Return the absolute heading to face for this control cycle."""
        lcl_readings = validate_readings(readings)
        lcl_position, lcl_target = tuple(position), tuple(target)
        cell_type = classify(lcl_readings)
        if self.steps == 0:
            self.start_position = lcl_position
        if is_first_run:
            self._working = self.ledger

        if cell_type is CellType.ENCLOSED:
            # every neighbour is a wall, nothing sensible to do but keep facing ahead
            direction = heading
        elif not is_first_run and not self.replay_abandoned:
            direction = self._replay_step(lcl_readings, cell_type, lcl_position, heading, lcl_target)
        elif self.mode is NavigationMode.BACKTRACK:
            direction = self._backtrack_step(lcl_readings, cell_type, lcl_position, heading)
        else:
            direction = self._explore_step(lcl_readings, cell_type, lcl_position, heading)

        self.steps += 1
        self.logger.debug(
            f"step={self.steps} pos={lcl_position} {cell_type.name} mode={self.mode.value} "
            f"facing {heading.name} -> {direction.name}"
        )
        return direction

    def _set_mode(self, mode: NavigationMode, reason: str):
        if mode is not self.mode:
            self.logger.debug(f"Mode {self.mode.value} -> {mode.value}: {reason}")
            self.mode = mode

    def _is_decision_cell(self, cell_type: CellType, position: Position) -> bool:
        # a two-way start cell is a choice too, nothing has been entered from either side
        return cell_type is CellType.JUNCTION or (cell_type is CellType.CORRIDOR and position == self.start_position)

    # --- helpers over the four readings ---

    @staticmethod
    def _candidates(readings, heading, accept, order=SCAN_ORDER) -> List[Heading]:
        return [heading.rotate(rel) for rel in order if accept(readings[rel])]

    @staticmethod
    def _is_open(reading: CellReading) -> bool:
        return reading is not CellReading.WALL

    @staticmethod
    def _is_passage(reading: CellReading) -> bool:
        return reading is CellReading.PASSAGE

    def _pick(self, options: List[Heading]) -> Heading:
        """Uniform choice, the RNG is only drawn when there is a real tie."""
        if len(options) == 1:
            return options[0]
        return self.rng.choice(options)

    def _only_exit(self, readings, heading) -> Heading:
        return self._candidates(readings, heading, self._is_open)[0]

    def _follow_corridor(self, readings, heading) -> Heading:
        """First open of Ahead, Right, Left; otherwise turn around."""
        forward = self._candidates(readings, heading, self._is_open, FORWARD_SCAN)
        return forward[0] if forward else heading.reverse()

    # --- explore ---

    def _explore_step(self, readings, cell_type, position, heading) -> Heading:
        passages = self._candidates(readings, heading, self._is_passage)
        if not passages:
            # dead end, or every other way leads into cells already entered
            self._set_mode(NavigationMode.BACKTRACK, f"no passage left at {position}")
            if readings[RelativeDirection.BEHIND] is CellReading.WALL:
                return self._only_exit(readings, heading)
            return heading.reverse()

        if not self._is_decision_cell(cell_type, position):
            return passages[0]
        choice = self._pick(passages)
        self._note_junction(position, heading, choice)
        return choice

    def _note_junction(self, position, heading, choice):
        if self._working.lookup(position=position, latest=True) is None:
            if self._working.record(arrival=heading, position=position, chosen=choice):
                self.logger.debug(f"Recorded junction #{len(self._working)} at {position}, arrived {heading.name}, chose {choice.name}")
        else:
            # back at a junction on the current path, remember the new branch
            self._working.update(position=position, chosen=choice)
            self.logger.debug(f"Junction {position} now leaves {choice.name}")

    # --- backtrack ---

    def _backtrack_step(self, readings, cell_type, position, heading) -> Heading:
        if cell_type is CellType.DEAD_END:
            return self._only_exit(readings, heading)
        if not self._is_decision_cell(cell_type, position):
            return self._follow_corridor(readings, heading)

        if count_unexplored(readings):
            self._set_mode(NavigationMode.EXPLORE, f"unexplored passage at junction {position}")
            return self._explore_step(readings, cell_type, position, heading)

        entry = self._take_junction(position)
        if entry is not None:
            back = entry.arrival.reverse()
            if readings[back.relative_to(heading)] is not CellReading.WALL:
                return back
            self.logger.debug(f"Recorded way back {back.name} at {position} is walled")
        else:
            self.logger.debug(f"No ledger entry for junction {position}")

        self._set_mode(NavigationMode.EXPLORE, "backtrack miss")
        return self._pick(self._candidates(readings, heading, self._is_open))

    def _take_junction(self, position) -> Optional[JunctionEntry]:
        if self.discipline is LedgerDiscipline.STACK:
            top = self._working.last()
            if top is None or top.position != position:
                return None
            self.logger.debug(f"Popped junction at {position}")
            return self._working.pop_last()
        return self._working.lookup(position=position, latest=True)

    # --- replay and seek ---

    def _replay_step(self, readings, cell_type, position, heading, target) -> Heading:
        if self.mode is not NavigationMode.SEEK_TARGET and self.ledger.exhausted:
            self._set_mode(NavigationMode.SEEK_TARGET, "ledger exhausted")
        if self.mode is NavigationMode.SEEK_TARGET:
            return self._seek_step(readings, cell_type, position, heading, target)

        if cell_type is CellType.DEAD_END:
            return self._only_exit(readings, heading)
        if not self._is_decision_cell(cell_type, position):
            return self._follow_corridor(readings, heading)

        entry = self.ledger.advance_to(position=position)
        if entry is None:
            return self._abandon_replay(f"no ledger entry ahead for junction {position}",
                                        readings, cell_type, position, heading)
        if entry.chosen is None or readings[entry.chosen.relative_to(heading)] is CellReading.WALL:
            return self._abandon_replay(f"recorded choice at {position} is walled",
                                        readings, cell_type, position, heading)

        # keep the replayed route so a later abandon can still back out along it
        self._working.record(arrival=heading, position=position, chosen=entry.chosen)
        self.logger.debug(f"Replayed junction {self.ledger.cursor}/{len(self.ledger)} at {position}: {entry.chosen.name}")
        if self.ledger.exhausted:
            self._set_mode(NavigationMode.SEEK_TARGET, "ledger exhausted")
        return entry.chosen

    def _abandon_replay(self, reason, readings, cell_type, position, heading) -> Heading:
        self.logger.debug(f"Replay abandoned: {reason}")
        self.replay_abandoned = True
        self._set_mode(NavigationMode.EXPLORE, "replay abandoned")
        return self._explore_step(readings, cell_type, position, heading)

    def _seek_step(self, readings, cell_type, position, heading, target) -> Heading:
        """
        Greedy target step, kept to legal moves.

        The compass heading is taken when it is open and does not turn back
        while another exit exists; at a junction it must also lead somewhere
        not yet entered this run. Otherwise corridors are followed and
        junctions are left at random, preferring unentered passages.
        """
        greedy = seek(position, target)
        if greedy is None:
            return heading
        reading = readings[greedy.relative_to(heading)]
        exits = self._candidates(readings, heading, self._is_open)
        is_junction = cell_type is CellType.JUNCTION
        if (reading is not CellReading.WALL
                and (greedy is not heading.reverse() or len(exits) == 1)
                and (not is_junction or reading is CellReading.PASSAGE)):
            return greedy
        if not is_junction:
            return self._follow_corridor(readings, heading)
        passages = self._candidates(readings, heading, self._is_passage, FORWARD_SCAN)
        return self._pick(passages or self._candidates(readings, heading, self._is_open, FORWARD_SCAN))
