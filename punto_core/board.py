from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Optional, Tuple

Coord = Tuple[int, int]

BOARD_SIZE = 9
CENTER: Coord = (4, 4)
COLORS: Tuple[str, ...] = ("red", "blue", "yellow", "green")


@dataclass(frozen=True)
class Tile:
    """A numbered, colored playing piece."""
    value: int  # 1..9
    color: str

    def short(self) -> str:
        return f"{self.color[0].upper()}{self.value}"


@dataclass(frozen=True)
class PlacedTile:
    """A tile that sits on the board, remembering who put it there."""
    value: int
    color: str
    owner_id: int

    def tile(self) -> Tile:
        return Tile(self.value, self.color)


Cell = Optional[PlacedTile]


def _empty_grid() -> List[List[Cell]]:
    return [[None] * BOARD_SIZE for _ in range(BOARD_SIZE)]


@dataclass
class Board:
    """The fixed 9x9 grid. Cells are either empty (None) or hold a PlacedTile."""
    grid: List[List[Cell]] = field(default_factory=_empty_grid)

    @staticmethod
    def in_bounds(r: int, c: int) -> bool:
        return 0 <= r < BOARD_SIZE and 0 <= c < BOARD_SIZE

    def at(self, r: int, c: int) -> Cell:
        return self.grid[r][c]

    def set(self, r: int, c: int, cell: Cell) -> None:
        self.grid[r][c] = cell

    def is_empty(self) -> bool:
        return all(cell is None for row in self.grid for cell in row)

    def coords(self) -> Iterable[Coord]:
        """Iterates over all coordinates on the board, row-major."""
        for r in range(BOARD_SIZE):
            for c in range(BOARD_SIZE):
                yield (r, c)

    def neighbors(self, r: int, c: int) -> Iterator[Coord]:
        """Yields the in-bounds 8-neighbours of a cell."""
        for dr in (-1, 0, 1):
            for dc in (-1, 0, 1):
                if dr == 0 and dc == 0:
                    continue
                nr, nc = r + dr, c + dc
                if self.in_bounds(nr, nc):
                    yield (nr, nc)

    def has_occupied_neighbor(self, r: int, c: int) -> bool:
        return any(self.grid[nr][nc] is not None for nr, nc in self.neighbors(r, c))

    def placed(self) -> Iterator[Tuple[Coord, PlacedTile]]:
        for r, c in self.coords():
            cell = self.grid[r][c]
            if cell is not None:
                yield (r, c), cell

    def copy(self) -> 'Board':
        # PlacedTile is immutable, so copying the rows is a full structural copy.
        return Board(grid=[list(row) for row in self.grid])

    def pretty(self, highlight: Optional[Iterable[Coord]] = None) -> str:
        """Generates a human-readable string representation of the board."""
        marks = set(highlight or ())
        lines: List[str] = ["    " + " ".join(f"{c:>3}" for c in range(BOARD_SIZE))]
        for r in range(BOARD_SIZE):
            row: List[str] = []
            for c in range(BOARD_SIZE):
                cell = self.grid[r][c]
                if cell is None:
                    txt = "+" if (r, c) == CENTER else "."
                else:
                    txt = cell.tile().short()
                if (r, c) in marks:
                    txt = f"*{txt}"
                row.append(f"{txt:>3}")
            lines.append(f"{r:>3} " + " ".join(row))
        return "\n".join(lines)
