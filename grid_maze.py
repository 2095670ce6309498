"""Grid maze host for the junction engine: maze, sensing mouse and run driver."""

import logging
import os
from dataclasses import dataclass, field
from typing import Tuple, List, Dict, Optional, Set

import numpy as np
from dotenv import load_dotenv

from junction_engine import (
    CellReading, CellType, Heading, JunctionEngine, LedgerDiscipline, Position, RelativeDirection,
    classify,
)

__version__ = '20261019_1130'

MAX_STEPS = 5000
RUNS = 3
LOG_LEVEL = logging.INFO #DEBUG

logger = logging.getLogger(__name__)

Decision = Tuple[Position, CellType, Heading]


def main():
    """Demo the engine over several runs of the default maze."""
    try:
        config = load_config()
        logging.getLogger().setLevel(config["log_level"])
        print(f"start maze v.{__version__}, ledger={config['discipline'].value}, seed={config['seed']}")

        maze, start, goal = get_default_maze()
        my_maze = GridMaze(maze=maze, start=start, goal=goal)
        my_mouse = GridMouse(maze=my_maze)
        engine = JunctionEngine(discipline=config["discipline"], seed=config["seed"])

        results = run_attempts(engine=engine, mouse=my_mouse, runs=config["runs"], max_steps=config["max_steps"])
        for run, result in enumerate(results):
            outcome = "Goal reached" if result.reached else "Stopped"
            print(f"run {run}: {outcome} in {result.steps} steps, {result.collisions} collisions")
        print()
        print(render_with_mouse(maze=my_maze, mouse=my_mouse))
        print(engine.get_status())
        return True

    except Exception as e:
        logger.exception(f"Error in main: {e}")
        return False


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {value!r}") from e


def load_config() -> Dict:
    """Read demo settings from the environment (and a .env file if present)."""
    load_dotenv()

    discipline_name = os.getenv("MAZE_LEDGER", LedgerDiscipline.STACK.value).strip().lower()
    try:
        discipline = LedgerDiscipline(discipline_name)
    except ValueError as e:
        raise ValueError(f"MAZE_LEDGER must be one of 'stack', 'coordinate', got {discipline_name!r}") from e

    level_name = os.getenv("MAZE_LOG_LEVEL", "").strip().upper()
    log_level = logging.getLevelName(level_name) if level_name else LOG_LEVEL
    if not isinstance(log_level, int):
        raise ValueError(f"MAZE_LOG_LEVEL is not a logging level: {level_name!r}")

    config = {
        "runs": _env_int("MAZE_RUNS", RUNS),
        "seed": _env_int("MAZE_SEED", None),
        "max_steps": _env_int("MAZE_MAX_STEPS", MAX_STEPS),
        "discipline": discipline,
        "log_level": log_level,
    }
    if config["runs"] < 1 or config["max_steps"] < 1:
        raise ValueError(f"MAZE_RUNS and MAZE_MAX_STEPS must be positive, got {config}")
    return config


def get_default_maze(*, large: bool = False) -> Tuple[np.ndarray, Position, Position]:
    """Return (grid, start, goal). Grid: 1=wall, 0=free. Positions are (x, y)."""
    if not large:
        maze = np.array([
            [1,1,1,1,1,1,1,1,1,1,1,1,1,1,1],
            [1,0,0,0,1,0,0,0,0,0,1,0,0,0,1],
            [1,1,1,0,1,0,1,1,1,0,1,0,1,0,1],
            [1,0,0,0,0,0,0,0,1,0,0,0,1,0,1],
            [1,0,1,1,1,1,0,1,1,1,0,1,1,0,1], # less solid wall
            # [1,1,1,1,1,1,1,1,1,1,0,1,1,0,1], # more solid wall
            [1,0,1,0,0,0,0,0,0,1,0,0,0,0,1],
            [1,0,1,0,1,1,1,1,0,1,1,1,1,0,1],
            [1,0,0,0,1,0,0,0,0,0,0,0,1,0,1],
            [1,0,1,1,1,1,1,0,1,1,1,0,1,0,1],
            [1,0,0,0,0,0,1,0,0,0,1,0,0,0,1],
            [1,1,1,0,1,0,1,1,1,0,1,1,1,0,1],
            [1,0,0,0,1,0,0,0,0,0,0,0,1,0,1],
            [1,0,1,1,1,1,1,1,1,1,1,0,1,0,1],
            [1,0,0,0,0,0,0,0,0,0,0,0,0,0,1],
            [1,1,1,1,1,1,1,1,1,1,1,1,1,1,1],
        ], dtype=int)
        start = (1, 1)
        goal = (5, 7)

    else:
        maze = np.array([
            [1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1],
            [1, 0, 0, 0, 0, 1, 0, 0, 0, 0, 0, 1, 0, 0, 0, 1, 0, 0, 0, 0, 1],
            [1, 0, 1, 1, 0, 1, 0, 1, 1, 1, 0, 1, 0, 1, 0, 1, 0, 1, 1, 0, 1],
            [1, 0, 1, 0, 0, 0, 0, 0, 0, 1, 0, 0, 0, 1, 0, 0, 0, 0, 1, 0, 1],
            [1, 0, 1, 0, 1, 1, 1, 1, 0, 1, 1, 1, 0, 1, 1, 1, 1, 0, 1, 0, 1],
            [1, 0, 0, 0, 1, 0, 0, 1, 0, 0, 0, 1, 0, 0, 0, 0, 1, 0, 0, 0, 1],
            [1, 1, 1, 0, 1, 0, 1, 1, 1, 1, 0, 1, 1, 1, 1, 0, 1, 1, 1, 0, 1],
            [1, 0, 0, 0, 1, 0, 0, 0, 0, 0, 0, 0, 0, 0, 1, 0, 0, 0, 1, 0, 1],
            [1, 0, 1, 1, 1, 1, 1, 0, 1, 1, 1, 1, 1, 0, 1, 1, 1, 0, 1, 0, 1],
            [1, 0, 0, 0, 0, 0, 1, 0, 0, 0, 0, 0, 1, 0, 0, 0, 1, 0, 0, 0, 1],
            [1, 1, 1, 0, 1, 0, 1, 1, 1, 1, 1, 0, 1, 1, 1, 0, 1, 1, 1, 0, 1],
            [1, 0, 0, 0, 1, 0, 0, 0, 0, 0, 1, 0, 0, 0, 0, 0, 1, 0, 0, 0, 1],
            [1, 0, 1, 1, 1, 1, 1, 1, 1, 0, 1, 1, 1, 1, 1, 1, 1, 0, 1, 1, 1],
            [1, 0, 0, 0, 0, 0, 0, 0, 1, 0, 0, 0, 0, 0, 0, 0, 1, 0, 0, 0, 1],
            [1, 1, 1, 1, 1, 0, 1, 0, 1, 1, 1, 1, 1, 0, 1, 1, 1, 1, 1, 0, 1],
            [1, 0, 0, 0, 1, 0, 1, 0, 0, 0, 0, 0, 1, 0, 1, 0, 0, 0, 1, 0, 1],
            [1, 0, 1, 0, 1, 0, 1, 1, 1, 1, 1, 0, 1, 0, 1, 0, 1, 0, 1, 0, 1],
            [1, 0, 1, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 1, 0, 1, 0, 0, 0, 1],
            [1, 0, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 0, 1, 0, 1, 1, 1, 1, 1],
            [1, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 1],
            [1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1],
        ], dtype=int)
        start = (1, 1)
        goal = (19, 19)

    return maze, start, goal


class GridMaze:
    """Maze environment with walls and free spaces."""

    # Class constant for heading vectors, (dx, dy) with y growing south
    DELTAS = {
        Heading.NORTH: (0, -1),
        Heading.EAST: (1, 0),
        Heading.SOUTH: (0, 1),
        Heading.WEST: (-1, 0),
    }

    def __init__(
        self, *,
        maze: np.ndarray,
        start: Position,
        goal: Position,
    ):
        self.maze = np.asarray(maze, dtype=int)
        self.rows, self.cols = self.maze.shape
        self.start = tuple(start)
        self.goal = tuple(goal)

        # Validate positions
        for pos, name in [(self.start, "start"), (self.goal, "goal")]:
            if not self.is_free(pos=pos):
                raise ValueError(f"{name} {pos} must be on a free cell")

        logger.debug(f"{self.cols}x{self.rows} GridMaze instantiated, goal@{self.goal}, start@{self.start}")

    def is_free(self, *, pos: Position) -> bool:
        """Check if position is within bounds and not a wall."""
        try:
            x, y = pos
            return bool(0 <= y < self.rows and 0 <= x < self.cols and self.maze[y, x] == 0)
        except (TypeError, ValueError, IndexError):
            return False

    def free_cells(self) -> int:
        return int(np.count_nonzero(self.maze == 0))

    def step_from(self, *, pos: Position, heading: Heading) -> Position:
        dx, dy = self.DELTAS[heading]
        return (pos[0] + dx, pos[1] + dy)

    def render_ascii(self, *, path: Optional[List[Position]] = None, visited: Optional[Set[Position]] = None) -> str:
        """ASCII view: '#' wall, 'S'/'G' start and goal, '*' path, '.' other visited cells."""
        marks = {pos: "." for pos in visited or ()}
        marks.update({pos: "*" for pos in path or ()})
        marks[self.start], marks[self.goal] = "S", "G"
        return "\n".join(
            "".join(marks.get((x, y), "#" if self.maze[y, x] == 1 else " ") for x in range(self.cols))
            for y in range(self.rows)
        )


class GridMouse:
    """Mouse that senses its four neighbours and moves on headings it is given."""

    def __init__(self, *, maze: GridMaze, heading: Optional[Heading] = None):
        self.maze = maze
        self.runs = 0
        # Without an explicit heading, face the first open passage: E > S > W > N
        self.initial_heading = heading if heading is not None else self._first_open_heading()
        self._start_run()

    def _first_open_heading(self) -> Heading:
        for h in (Heading.EAST, Heading.SOUTH, Heading.WEST, Heading.NORTH):
            if self.maze.is_free(pos=self.maze.step_from(pos=self.maze.start, heading=h)):
                return h
        return Heading.NORTH

    def _start_run(self):
        self.pos = self.maze.start
        self.heading = self.initial_heading
        self.steps = 0
        self.collisions = 0
        self.visited: Set[Position] = {self.pos}
        self.trail: List[Position] = [self.pos]

    def reset_run(self):
        """Put the mouse back on the start for another run of the same maze."""
        self.runs += 1
        self._start_run()
        logger.debug(f"GridMouse reset for run {self.runs}")

    # === Host boundary ===

    def current_position(self) -> Position:
        return self.pos

    def target_position(self) -> Position:
        return self.maze.goal

    def current_heading(self) -> Heading:
        return self.heading

    def look(self, *, relative: RelativeDirection) -> CellReading:
        """Type of the neighbouring cell in a direction relative to the heading."""
        next_pos = self.maze.step_from(pos=self.pos, heading=self.heading.rotate(relative))
        if not self.maze.is_free(pos=next_pos):
            return CellReading.WALL
        if next_pos in self.visited:
            return CellReading.VISITED
        return CellReading.PASSAGE

    def sense_readings(self) -> Dict[RelativeDirection, CellReading]:
        return {rel: self.look(relative=rel) for rel in RelativeDirection}

    def sense_at_goal(self) -> bool:
        return self.pos == self.maze.goal

    def route(self) -> List[Position]:
        """This run's trail with every loop and dead-end excursion cut out."""
        lcl_route: List[Position] = []
        index: Dict[Position, int] = {}
        for pos in self.trail:
            if pos in index:
                cut = index[pos] + 1
                for dropped in lcl_route[cut:]:
                    del index[dropped]
                del lcl_route[cut:]
            else:
                index[pos] = len(lcl_route)
                lcl_route.append(pos)
        return lcl_route

    # === Actuation ===

    def face(self, *, heading: Heading):
        self.heading = heading

    def move(self, *, heading: Heading) -> bool:
        """Face ``heading`` and step one cell. Returns False if blocked."""
        self.face(heading=heading)
        next_pos = self.maze.step_from(pos=self.pos, heading=heading)

        if not self.maze.is_free(pos=next_pos):
            self.collisions += 1
            logger.debug(f"Blocked at {next_pos}")
            return False

        self.pos = next_pos
        self.steps += 1
        self.visited.add(self.pos)
        self.trail.append(self.pos)
        return True


@dataclass
class RunResult:
    reached: bool
    steps: int
    collisions: int
    decisions: List[Decision] = field(default_factory=list)

    def junction_headings(self) -> List[Heading]:
        return [heading for _, cell_type, heading in self.decisions if cell_type is CellType.JUNCTION]


def run_once(*, engine: JunctionEngine, mouse: GridMouse, max_steps: int = MAX_STEPS) -> RunResult:
    """Drive one run: sense, decide, move, until the goal or the step cap."""
    decisions: List[Decision] = []
    while not mouse.sense_at_goal() and len(decisions) < max_steps:
        readings = mouse.sense_readings()
        heading = engine.step(
            readings=readings,
            position=mouse.current_position(),
            heading=mouse.current_heading(),
            target=mouse.target_position(),
            is_first_run=mouse.runs == 0,
        )
        decisions.append((mouse.current_position(), classify(readings), heading))
        mouse.move(heading=heading)

    result = RunResult(
        reached=mouse.sense_at_goal(), steps=mouse.steps, collisions=mouse.collisions, decisions=decisions,
    )
    if result.reached:
        logger.info(f"Run {mouse.runs}: goal reached in {result.steps} steps")
    else:
        logger.info(f"Run {mouse.runs}: step cap {max_steps} hit after {result.steps} steps")
    return result


def run_attempts(*, engine: JunctionEngine, mouse: GridMouse, runs: int, max_steps: int = MAX_STEPS) -> List[RunResult]:
    """Several runs of the same maze, resetting mouse and engine in between."""
    results = []
    for run in range(runs):
        if run:
            mouse.reset_run()
            engine.on_run_reset()
        results.append(run_once(engine=engine, mouse=mouse, max_steps=max_steps))
    return results


def render_with_mouse(*, maze: GridMaze, mouse: GridMouse) -> str:
    """Route so far as '*', other visited cells as '.', mouse as 'M'."""
    lines = maze.render_ascii(path=mouse.route(), visited=mouse.visited).splitlines()
    x, y = mouse.pos
    row = list(lines[y])
    row[x] = "M"
    lines[y] = "".join(row)
    return "\n".join(lines)


if __name__ == "__main__":
    # Set up basic logging for standalone execution
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s %(levelname)s [%(name)s]: %(message)s"
    )
    main()
