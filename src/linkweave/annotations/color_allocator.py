"""Perceptually distinct highlight colour allocation.

Colours are drawn from an N×N×N grid over CIE L*a*b* (L in ``[0, 100]``,
a and b in ``[-128, 128)``). Each allocation samples the least-occupied
cell and rejects candidates whose displayed colour sits within the ΔE94
threshold of a colour handed out earlier. Cells outside the sRGB gamut clamp
to a handful of displayed colours, so a cell that runs out of attempts hands
over to the next least-occupied one.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import AbstractSet, Dict, Iterator, List, Set, Tuple

from ..theme.models import ColorTuple
from .colors import Lab, delta_e94, format_rgba, lab_to_rgb, parse_css_color, rgb_to_lab

LOGGER = logging.getLogger(__name__)

Cell = Tuple[int, int, int]

_A_MIN = -128.0
_AB_SPAN = 256.0


@dataclass(slots=True)
class AllocatorConfig:
    """Tunables for :class:`ColorAllocator`."""

    grid_size: int = 10
    min_delta_e: float = 1.0
    max_attempts: int = 50
    max_cells: int = 16
    dark_alpha: float = 0.4
    light_alpha: float = 0.35

    def __post_init__(self) -> None:
        if self.grid_size < 1:
            raise ValueError("grid_size must be at least 1")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.max_cells < 1:
            raise ValueError("max_cells must be at least 1")
        if self.min_delta_e < 0:
            raise ValueError("min_delta_e cannot be negative")

    def alpha_for(self, is_dark_mode: bool) -> float:
        return self.dark_alpha if is_dark_mode else self.light_alpha


@dataclass(slots=True, frozen=True)
class Allocation:
    """Outcome of one allocation: the cell used and the displayed colour."""

    cell: Cell
    lab: Lab
    rgb: ColorTuple
    css: str
    attempts: int
    distance: float


class ColorRegistry:
    """Occupancy grid plus the Lab coordinates of every colour handed out.

    The registry only grows; :meth:`clear` returns it to a pristine state.
    """

    def __init__(self, grid_size: int = 10) -> None:
        if grid_size < 1:
            raise ValueError("grid_size must be at least 1")
        self.grid_size = grid_size
        self._counts: List[int] = [0] * grid_size**3
        self._labs: List[Lab] = []

    def __len__(self) -> int:
        return len(self._labs)

    def _index(self, cell: Cell) -> int:
        n = self.grid_size
        return (cell[0] * n + cell[1]) * n + cell[2]

    def occupancy(self, cell: Cell) -> int:
        return self._counts[self._index(cell)]

    def iter_cells(self) -> Iterator[Cell]:
        n = self.grid_size
        for li in range(n):
            for ai in range(n):
                for bi in range(n):
                    yield (li, ai, bi)

    def least_occupied_cell(self, rng: random.Random, exclude: AbstractSet[Cell] = frozenset()) -> Cell | None:
        """Return one of the least-occupied cells, chosen uniformly at random.

        Cells in ``exclude`` are skipped; ``None`` means none is left.
        """

        counts = {cell: self._counts[self._index(cell)] for cell in self.iter_cells() if cell not in exclude}
        if not counts:
            return None
        lowest = min(counts.values())
        return rng.choice([cell for cell, count in counts.items() if count == lowest])

    def cell_for(self, lab: Lab) -> Cell:
        n = self.grid_size

        def bucket(value: float, low: float, span: float) -> int:
            return max(0, min(n - 1, int((value - low) / span * n)))

        return (
            bucket(lab[0], 0.0, 100.0),
            bucket(lab[1], _A_MIN, _AB_SPAN),
            bucket(lab[2], _A_MIN, _AB_SPAN),
        )

    def sample(self, cell: Cell, rng: random.Random) -> Lab:
        """Sample a Lab coordinate uniformly inside ``cell``."""

        n = self.grid_size
        li, ai, bi = cell
        return (
            (li + rng.random()) * 100.0 / n,
            (ai + rng.random()) * _AB_SPAN / n + _A_MIN,
            (bi + rng.random()) * _AB_SPAN / n + _A_MIN,
        )

    def nearest_distance(self, lab: Lab) -> float:
        """Return the smallest ΔE94 from any recorded colour to ``lab``."""

        if not self._labs:
            return float("inf")
        return min(delta_e94(existing, lab) for existing in self._labs)

    def record(self, cell: Cell, lab: Lab) -> None:
        self._counts[self._index(cell)] += 1
        self._labs.append(lab)

    def recorded(self) -> Tuple[Lab, ...]:
        return tuple(self._labs)

    def clear(self) -> None:
        self._counts = [0] * self.grid_size**3
        self._labs.clear()


class ColorAllocator:
    """Hands out highlight colours that stay visually distinct from each other.

    The allocator has no notion of which key produced which colour; caching
    per key is :class:`HighlightPalette`'s job.
    """

    def __init__(
        self,
        registry: ColorRegistry | None = None,
        *,
        config: AllocatorConfig | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.config = config or AllocatorConfig()
        self.registry = registry or ColorRegistry(self.config.grid_size)
        self._rng = rng or random.Random()

    def allocate(self, key: str, is_dark_mode: bool) -> str:
        """Return a CSS ``rgba()`` colour for ``key`` suited to the theme."""

        return self.allocate_detailed(key, is_dark_mode).css

    def allocate_detailed(self, key: str, is_dark_mode: bool) -> Allocation:
        """Allocate a colour and return every detail of the outcome.

        Up to ``max_attempts`` samples are drawn from the least-occupied cell.
        When they all collide the next least-occupied cell is tried, for at
        most ``max_cells`` cells. Never fails: when every attempt collides,
        the candidate farthest from its nearest neighbour is accepted.
        """

        registry = self.registry
        config = self.config
        best: Tuple[float, Cell, Lab, ColorTuple] | None = None
        tried: Set[Cell] = set()
        attempts = 0
        while len(tried) < config.max_cells:
            cell = registry.least_occupied_cell(self._rng, tried)
            if cell is None:
                break
            tried.add(cell)
            for _ in range(config.max_attempts):
                attempts += 1
                rgb = lab_to_rgb(registry.sample(cell, self._rng))
                # Distances are measured on the colour actually displayed.
                lab = rgb_to_lab(rgb)
                distance = registry.nearest_distance(lab)
                if best is None or distance > best[0]:
                    best = (distance, cell, lab, rgb)
                if distance >= config.min_delta_e:
                    break
            assert best is not None
            if best[0] >= config.min_delta_e:
                break
            LOGGER.debug("Cell %s has no distinct colour for %r; moving on", cell, key)
        assert best is not None
        distance, cell, lab, rgb = best
        if distance < config.min_delta_e:
            LOGGER.debug(
                "No distinct colour for %r in %d cell(s) after %d attempts; accepting ΔE94=%.3f",
                key,
                len(tried),
                attempts,
                distance,
            )
        registry.record(cell, lab)
        css = format_rgba(rgb, self.config.alpha_for(is_dark_mode))
        LOGGER.debug("Allocated %s for %r from cell %s", css, key, cell)
        return Allocation(cell=cell, lab=lab, rgb=rgb, css=css, attempts=attempts, distance=distance)

    def clear(self) -> None:
        self.registry.clear()
        LOGGER.debug("Colour registry cleared")


class HighlightPalette:
    """Key → colour cache in front of a :class:`ColorAllocator`.

    The same key maps to one allocation for the lifetime of the registry;
    switching theme re-renders that allocation instead of allocating again.
    """

    def __init__(self, allocator: ColorAllocator | None = None) -> None:
        self.allocator = allocator or ColorAllocator()
        self._colors: Dict[str, ColorTuple] = {}

    def __contains__(self, key: object) -> bool:
        return key in self._colors

    def __len__(self) -> int:
        return len(self._colors)

    def color_for(self, key: str, is_dark_mode: bool) -> str:
        rgb = self._colors.get(key)
        if rgb is None:
            allocation = self.allocator.allocate_detailed(key, is_dark_mode)
            self._colors[key] = allocation.rgb
            return allocation.css
        return format_rgba(rgb, self.allocator.config.alpha_for(is_dark_mode))

    def adopt(self, key: str, css: str) -> bool:
        """Remember a colour found in a loaded document for ``key``.

        Returns ``False`` when the key is already known or ``css`` is unparseable.
        """

        if key in self._colors:
            return False
        try:
            rgb, _ = parse_css_color(css)
        except ValueError:
            LOGGER.debug("Ignoring unparseable highlight colour %r for %r", css, key)
            return False
        self._colors[key] = rgb
        lab = rgb_to_lab(rgb)
        self.allocator.registry.record(self.allocator.registry.cell_for(lab), lab)
        return True

    def recolor(self, key: str, css: str, is_dark_mode: bool) -> str:
        """Return the theme-appropriate colour for a highlight currently shown as ``css``.

        Never allocates: an unknown key with an unparseable colour keeps ``css``.
        """

        rgb = self._colors.get(key)
        if rgb is None:
            try:
                rgb, _ = parse_css_color(css)
            except ValueError:
                LOGGER.debug("Keeping unparseable highlight colour %r for %r", css, key)
                return css
        return format_rgba(rgb, self.allocator.config.alpha_for(is_dark_mode))

    def clear(self) -> None:
        self._colors.clear()
        self.allocator.clear()


__all__ = [
    "Allocation",
    "AllocatorConfig",
    "Cell",
    "ColorAllocator",
    "ColorRegistry",
    "HighlightPalette",
]
