from dataclasses import dataclass, field
from functools import partial
from typing import Any

import numpy as np

from mdfiles.cell import Cell
from mdfiles.parsers.dcd import DCDFile
from mdfiles.parsers.file_formats import FileFormat
from mdfiles.types import (
    CellArray,
    Int1DArray,
    PathLike,
    SingleDType,
    TrajArray,
    TrajNDArray,
)

from .names import DATA_VAR_DIMS, DEFAULT_COORDS, Coord, DataVar
from .on_disk_array import OnDiskArray


def get_dcd_dims_and_cell(filename: PathLike) -> tuple[int, int, CellArray]:
    """Frame and atom counts plus per-frame orthorhombic cell vectors."""
    with DCDFile(filename) as dcd:
        lengths = np.zeros((dcd.n_frames, 3), dtype=np.float64)
        for frame in range(dcd.n_frames):
            dcd.go_to_frame(frame)
            lengths[frame] = dcd.read_unit_cell()

        return dcd.n_frames, dcd.n_atoms, Cell.from_lengths(lengths).array


def read_dcd_frames(
    frames: Int1DArray,
    atoms: Int1DArray,
    xyz_dim: Int1DArray,
    filename: PathLike,
    dtype: SingleDType = "float64",
) -> TrajArray:
    for dim in (frames, atoms, xyz_dim):
        if not isinstance(dim, np.ndarray):
            raise TypeError(f"invalid index type: {type(dim)}")

    with DCDFile(filename) as dcd:
        positions = dcd.read_frames(frames)

    return positions[:, atoms][:, :, xyz_dim].astype(dtype)


@dataclass
class OnDiskDCDTrajectory:
    filename: PathLike
    dt: float = 1
    dtype: SingleDType = "float64"

    n_frames: int = field(init=False)
    n_atoms: int = field(init=False)
    _cell: CellArray = field(init=False)

    def __post_init__(self) -> None:
        self.n_frames, self.n_atoms, self._cell = get_dcd_dims_and_cell(self.filename)

    @property
    def positions(self) -> OnDiskArray:
        parser_fn = partial(read_dcd_frames, filename=self.filename, dtype=self.dtype)
        return OnDiskArray(parser_fn, (self.n_frames, self.n_atoms, 3), self.dtype)

    @property
    def cell(self) -> CellArray:
        return self._cell

    def get_data_vars(
        self,
    ) -> tuple[tuple[str, tuple[str, ...], OnDiskArray | CellArray], ...]:
        return (
            (DataVar.POSITIONS, DATA_VAR_DIMS[DataVar.POSITIONS], self.positions),
            (DataVar.CELL, DATA_VAR_DIMS[DataVar.CELL], self.cell),
        )

    def get_coords(self) -> tuple[tuple[str, tuple[str, ...], TrajNDArray], ...]:
        return (
            (Coord.TIME, DATA_VAR_DIMS[Coord.TIME], np.arange(self.n_frames) * self.dt),
            (Coord.ATOMID, DATA_VAR_DIMS[Coord.ATOMID], np.arange(self.n_atoms)),
            (Coord.SPACE, DATA_VAR_DIMS[Coord.SPACE], DEFAULT_COORDS[Coord.SPACE]),
            (Coord.CELL, DATA_VAR_DIMS[Coord.CELL], DEFAULT_COORDS[Coord.CELL]),
        )

    def get_attrs(self) -> dict[str, Any]:
        return {
            "filename": str(self.filename),
            "file_format": FileFormat.DCD.value,
            "n_frames": self.n_frames,
            "n_atoms": self.n_atoms,
        }
