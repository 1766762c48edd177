import logging
from typing import Any

import numpy as np
import xarray as xr
import xarray.backends
import xarray.backends.locks
from xarray.core import indexing

from mdfiles.parsers.file_formats import (
    TRAJECTORY_FORMATS,
    FileFormat,
    get_valid_trajectory_format,
    guess_file_format_str,
)
from mdfiles.parsers.structure import StructureAtoms, read_struct
from mdfiles.types import PathLike, SingleDType, TrajNDArray

from .dcd import OnDiskDCDTrajectory
from .names import DATA_VAR_DIMS, Coord
from .on_disk_array import OnDiskArray, OuterIndex

logger = logging.getLogger(__name__)

LOCK = xarray.backends.locks.SerializableLock()

ON_DISK_TRAJECTORY: dict[FileFormat, type[OnDiskDCDTrajectory]] = {
    FileFormat.DCD: OnDiskDCDTrajectory,
}


def to_lazy_variable(dims: tuple[str, ...], arr: OnDiskArray) -> xr.Variable:
    return xr.Variable(
        dims,
        indexing.LazilyIndexedArray(
            TrajectoryBackendArray(arr, arr.shape, arr.dtype, LOCK)
        ),
    )


def topology_coords(
    topology: PathLike, n_atoms: int
) -> dict[str, tuple[tuple[str, ...], TrajNDArray]]:
    """Per-atom labels from a PSF or PDB file, keyed by coordinate name.

    Raises
    ------
    ValueError
        If the topology cannot be read or its atom count differs from `n_atoms`
    """
    structure: StructureAtoms = read_struct(topology)

    if structure.atoms is None:
        raise ValueError(f"could not read atoms from topology: {topology}")

    if structure.natom != n_atoms:
        raise ValueError(
            f"topology {topology} has {structure.natom} atoms, "
            f"trajectory has {n_atoms}"
        )

    atoms = structure.atoms
    columns = {
        Coord.ATOM: np.array([atom.name.strip() for atom in atoms]),
        Coord.SEGMENT: np.array([atom.segment.strip() for atom in atoms]),
        Coord.RESID: np.array([atom.resid.strip() for atom in atoms]),
        Coord.RESNAME: np.array([atom.restype.strip() for atom in atoms]),
        Coord.CHARGE: np.array([atom.charge for atom in atoms], dtype=np.float64),
    }

    return {key: (DATA_VAR_DIMS[key], values) for key, values in columns.items()}


class TrajectoryBackendArray(xarray.backends.BackendArray):
    def __init__(
        self,
        array: OnDiskArray,
        shape: tuple[int, ...],
        dtype: SingleDType,
        lock: xarray.backends.locks.SerializableLock,
    ) -> None:
        self.array = array
        self.shape = shape
        self.dtype = dtype
        self.lock = lock

    def __getitem__(self, key: Any):
        return indexing.explicit_indexing_adapter(
            key,
            self.shape,
            indexing.IndexingSupport.OUTER,
            self._raw_indexing_method,
        )

    def _raw_indexing_method(self, key: tuple[OuterIndex, ...]) -> TrajNDArray:
        with self.lock:
            return self.array[key]


class MDFilesBackendEntrypoint(xarray.backends.BackendEntrypoint):
    description = (
        "Load DCD trajectories into Xarray, optionally labelled by a PSF or "
        f"PDB topology. Valid trajectory formats are: "
        f"{sorted(f.value for f in TRAJECTORY_FORMATS)}"
    )
    open_dataset_parameters = (
        "filename_or_obj",
        "drop_variables",
        "dtype",
        "dt",
        "topology",
        "file_format",
    )

    def guess_can_open(self, filename_or_obj) -> bool:
        file_format = guess_file_format_str(filename_or_obj)  # type: ignore

        if file_format is None:
            return False

        return FileFormat(file_format) in TRAJECTORY_FORMATS

    def open_dataset(
        self,
        filename_or_obj,
        *,
        drop_variables: Any | None = None,
        dtype: SingleDType = "float64",
        dt: int | float = 1,
        topology: PathLike | None = None,
        file_format: str | None = None,
    ) -> xr.Dataset:
        dtype = np.dtype(dtype)
        if file_format is None:
            file_format = guess_file_format_str(filename_or_obj)

        trajectory_format = get_valid_trajectory_format(file_format)

        traj = ON_DISK_TRAJECTORY[trajectory_format](filename_or_obj, dt, dtype=dtype)

        if isinstance(drop_variables, str):
            drop_variables = [drop_variables]
        dropped = set(drop_variables or ())

        data_vars = {}
        for key, dims, values in traj.get_data_vars():
            if key in dropped:
                continue
            if isinstance(values, OnDiskArray):
                data_vars[key] = to_lazy_variable(dims, values)
            else:
                data_vars[key] = xr.Variable(dims, values)

        coords = {
            key: xr.Variable(dims, coord) for key, dims, coord in traj.get_coords()
        }

        if topology is not None:
            coords.update(
                {
                    key: xr.Variable(dims, values)
                    for key, (dims, values) in topology_coords(
                        topology, traj.n_atoms
                    ).items()
                }
            )

        ds = xr.Dataset(
            data_vars=data_vars,
            coords=coords,
            attrs=traj.get_attrs(),
        )

        if topology is not None:
            ds = ds.set_xindex(Coord.ATOM)

        logger.debug(
            "opened %s as %s: %d frames, %d atoms",
            filename_or_obj,
            trajectory_format.value,
            traj.n_frames,
            traj.n_atoms,
        )
        return ds
