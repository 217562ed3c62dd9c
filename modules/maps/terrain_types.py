"""Tile type definitions and the terrain rules attached to each of them."""
from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, Final

IMPASSABLE: Final[float] = float("inf")
"""Sentinel cost returned for cells that cannot be entered."""

VOID_CORRUPTION_LIMIT: Final[float] = 0.9
"""Void tiles at or above this corruption level cannot be walked on."""

VOID_CORRUPTION_COST_FACTOR: Final[float] = 0.5


class TileType(IntEnum):
    """Kinds of terrain a grid cell can hold."""

    GROUND = 0
    BRIDGE = 1
    WATER = 2
    CLIFF = 3
    VOID = 4


@dataclass(frozen=True)
class TileDescriptor:
    """Describes the default gameplay characteristics of a tile type."""

    tile_type: TileType
    symbol: str
    base_cost: float

    def __post_init__(self) -> None:
        if self.base_cost < 1.0:
            raise ValueError("base_cost must be at least 1.0")


# Catalog of tile descriptors; the symbols are used by ASCII layouts.
TILE_CATALOG: Dict[TileType, TileDescriptor] = {
    TileType.GROUND: TileDescriptor(TileType.GROUND, ".", 1.0),
    TileType.BRIDGE: TileDescriptor(TileType.BRIDGE, "=", 1.2),
    TileType.WATER: TileDescriptor(TileType.WATER, "~", 999.0),
    TileType.CLIFF: TileDescriptor(TileType.CLIFF, "#", 999.0),
    TileType.VOID: TileDescriptor(TileType.VOID, "v", 2.0),
}

SYMBOLS: Dict[str, TileType] = {
    descriptor.symbol: tile_type for tile_type, descriptor in TILE_CATALOG.items()
}


def tile_walkable(tile_type: TileType, corruption: float) -> bool:
    """Return whether terrain of ``tile_type`` can be entered at all."""

    if tile_type is TileType.GROUND or tile_type is TileType.BRIDGE:
        return True
    if tile_type is TileType.WATER or tile_type is TileType.CLIFF:
        return False
    if tile_type is TileType.VOID:
        return corruption < VOID_CORRUPTION_LIMIT
    raise ValueError(f"unknown tile type {tile_type!r}")


def tile_cost(tile_type: TileType, base_cost: float, corruption: float) -> float:
    """Return the effective movement cost of a tile.

    Unwalkable terrain yields :data:`IMPASSABLE`.  Only void tiles are
    affected by corruption.
    """

    if not tile_walkable(tile_type, corruption):
        return IMPASSABLE
    if tile_type is TileType.VOID:
        return base_cost * (1.0 + corruption * VOID_CORRUPTION_COST_FACTOR)
    return base_cost


def parse_symbol(symbol: str) -> TileType:
    """Resolve a layout character into a :class:`TileType`."""

    try:
        return SYMBOLS[symbol]
    except KeyError as exc:
        raise ValueError(f"unknown tile symbol {symbol!r}") from exc


__all__ = [
    "IMPASSABLE",
    "TILE_CATALOG",
    "TileDescriptor",
    "TileType",
    "VOID_CORRUPTION_LIMIT",
    "parse_symbol",
    "tile_cost",
    "tile_walkable",
]
