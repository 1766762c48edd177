from enum import StrEnum
from typing import Any


class Dim(StrEnum):
    TIME = "time"
    ATOMID = "atom_id"
    SPACE = "xyz_dim"
    CELL = "cell_vector"


class Coord(StrEnum):
    TIME = "time"
    ATOMID = "atom_id"
    SPACE = "xyz_dim"
    CELL = "cell_vector"
    # per-atom labels taken from a topology file
    ATOM = "atoms"
    SEGMENT = "segment"
    RESID = "resid"
    RESNAME = "resname"
    CHARGE = "charge"


class DataVar(StrEnum):
    POSITIONS = "xyz"
    CELL = "cell"


DATA_VAR_DIMS: dict[Coord | DataVar, tuple[Dim, ...]] = {
    Coord.TIME: (Dim.TIME,),
    Coord.ATOMID: (Dim.ATOMID,),
    Coord.SPACE: (Dim.SPACE,),
    Coord.CELL: (Dim.CELL,),
    Coord.ATOM: (Dim.ATOMID,),
    Coord.SEGMENT: (Dim.ATOMID,),
    Coord.RESID: (Dim.ATOMID,),
    Coord.RESNAME: (Dim.ATOMID,),
    Coord.CHARGE: (Dim.ATOMID,),
    DataVar.POSITIONS: (Dim.TIME, Dim.ATOMID, Dim.SPACE),
    DataVar.CELL: (Dim.TIME, Dim.CELL, Dim.SPACE),
}


DEFAULT_COORDS: dict[Coord, Any] = {
    Coord.SPACE: list("xyz"),
    Coord.CELL: list("ABC"),
}
