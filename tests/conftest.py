import random
import sys
from pathlib import Path

import numpy as np
import pytest


# Ensure the repo root is on PYTHONPATH so the top-level modules import in tests
_ROOT = Path(__file__).resolve().parents[1]
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))


def carve_perfect_maze(*, cells_x: int, cells_y: int, seed: int) -> np.ndarray:
    """Seeded depth-first carving; every free cell is reachable by exactly one path."""
    rng = random.Random(seed)
    grid = np.ones((2 * cells_y + 1, 2 * cells_x + 1), dtype=int)
    grid[1, 1] = 0
    seen = {(0, 0)}
    stack = [(0, 0)]
    while stack:
        cx, cy = stack[-1]
        options = [
            (cx + dx, cy + dy)
            for dx, dy in ((0, -1), (1, 0), (0, 1), (-1, 0))
            if 0 <= cx + dx < cells_x and 0 <= cy + dy < cells_y and (cx + dx, cy + dy) not in seen
        ]
        if not options:
            stack.pop()
            continue
        nx, ny = rng.choice(options)
        grid[cy + ny + 1, cx + nx + 1] = 0  # wall between the two cells
        grid[2 * ny + 1, 2 * nx + 1] = 0
        seen.add((nx, ny))
        stack.append((nx, ny))
    return grid


def knock_through_walls(grid: np.ndarray, *, count: int, seed: int) -> np.ndarray:
    """Open `count` inner walls between cells, turning a perfect maze into one with loops."""
    rng = random.Random(seed)
    rows, cols = grid.shape
    walls = [
        (y, x)
        for y in range(1, rows - 1)
        for x in range(1, cols - 1)
        if grid[y, x] == 1 and y % 2 != x % 2
    ]
    for y, x in rng.sample(walls, min(count, len(walls))):
        grid[y, x] = 0
    return grid


@pytest.fixture
def perfect_maze():
    """Factory returning (grid, start, goal) for a seeded perfect maze."""
    def _make(*, seed: int, cells_x: int = 6, cells_y: int = 6):
        grid = carve_perfect_maze(cells_x=cells_x, cells_y=cells_y, seed=seed)
        return grid, (1, 1), (2 * cells_x - 1, 2 * cells_y - 1)
    return _make


@pytest.fixture
def braided_maze():
    """Factory returning (grid, start, goal) for a seeded maze with loops."""
    def _make(*, seed: int, cells_x: int = 8, cells_y: int = 8, openings: int = 8):
        grid = carve_perfect_maze(cells_x=cells_x, cells_y=cells_y, seed=seed)
        knock_through_walls(grid, count=openings, seed=seed)
        return grid, (1, 1), (2 * cells_x - 1, 2 * cells_y - 1)
    return _make


@pytest.fixture
def corridor_maze():
    """Straight 5-cell east-west corridor, start at the west end, goal at the east end."""
    grid = np.ones((3, 7), dtype=int)
    grid[1, 1:6] = 0
    return grid, (1, 1), (5, 1)


@pytest.fixture
def crossroads_maze():
    """Plus-shaped maze: one crossroads at (3, 3), arms of two cells each."""
    grid = np.ones((7, 7), dtype=int)
    grid[3, 1:6] = 0
    grid[1:6, 3] = 0
    return grid, (1, 3), (5, 3)
