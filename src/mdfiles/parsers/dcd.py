"""Random access to CHARMM/NAMD style DCD trajectories.

A DCD file is a sequence of Fortran unformatted records, each bracketed by a
4-byte length marker. The header holds the frame count at byte 8 (inside the
84-byte control record), the title count at byte 96 (first word of the title
record), then 80-byte title lines and a one-word atom count record. Every
frame after that has the same size::

    marker | 6 x float64 unit cell | marker            56 bytes
    marker | n_atoms x float32 x  | marker            4 * n_atoms + 8
    marker | n_atoms x float32 y  | marker            4 * n_atoms + 8
    marker | n_atoms x float32 z  | marker            4 * n_atoms + 8

so frame ``f`` starts at ``offset + f * (12 * n_atoms + 80)``. Only files
with a unit cell record in every frame and no fixed atoms are supported.
All values are little-endian.
"""

from __future__ import annotations

import io
import logging
import struct
from collections.abc import Sequence
from typing import BinaryIO, Self

import numpy as np
import numpy.typing as npt

from mdfiles.types import Coord1DArray, Float1DArray, Int1DArray, PathLike, TrajArray

logger = logging.getLogger(__name__)

MARKER_SIZE = 4
FLOAT_SIZE = 4
DOUBLE_SIZE = 8

# header
N_FRAMES_OFFSET = 8
N_TITLES_OFFSET = 96
TITLE_LINE_SIZE = 80
CHARMM_VERSION = 24

# frame
UNIT_CELL_VALUES = 6
UNIT_CELL_RECORD_SIZE = MARKER_SIZE + UNIT_CELL_VALUES * DOUBLE_SIZE + MARKER_SIZE
# CHARMM orders the unit cell as (A, gamma, B, beta, alpha, C)
UNIT_CELL_LENGTH_INDICES = (0, 2, 5)
COORD_ARRAYS = 3
FRAME_OVERHEAD = UNIT_CELL_RECORD_SIZE + COORD_ARRAYS * 2 * MARKER_SIZE

UINT32 = struct.Struct("<I")
INT32 = struct.Struct("<i")
UNIT_CELL = struct.Struct(f"<{UNIT_CELL_VALUES}d")
COORD_DTYPE = np.dtype("<f4")


class DCDError(Exception):
    pass


def frame_size(n_atoms: int) -> int:
    return COORD_ARRAYS * FLOAT_SIZE * n_atoms + FRAME_OVERHEAD


def _read_exact(f: BinaryIO, size: int) -> bytes:
    position = f.tell()
    data = f.read(size)
    if len(data) != size:
        raise DCDError(
            f"short read at byte {position}: expected {size} bytes, got {len(data)}"
        )
    return data


def read_header(f: BinaryIO) -> tuple[int, int, int]:
    """Return ``(n_frames, n_atoms, offset)`` from a DCD header."""
    f.seek(N_FRAMES_OFFSET, io.SEEK_SET)
    (n_frames,) = UINT32.unpack(_read_exact(f, UINT32.size))

    f.seek(N_TITLES_OFFSET, io.SEEK_SET)
    (n_titles,) = UINT32.unpack(_read_exact(f, UINT32.size))

    # title lines, end of title record, start of atom count record
    f.seek(TITLE_LINE_SIZE * n_titles + 2 * MARKER_SIZE, io.SEEK_CUR)
    (n_atoms,) = UINT32.unpack(_read_exact(f, UINT32.size))

    # end of atom count record
    f.seek(MARKER_SIZE, io.SEEK_CUR)
    return n_frames, n_atoms, f.tell()


class DCDFile:
    """Open DCD trajectory with a frame cursor.

    The cursor is the position of the underlying file. Positioning methods
    (`go_to_frame`, `next_frame`) move it; the accessors (`read_unit_cell`,
    `read_coords`, `write_coords`) read or write the frame at the cursor and
    leave the cursor where they found it.

    Parameters
    ----------
    filename : PathLike
        Path to the DCD file
    writable : bool, optional
        Open for in-place coordinate updates, by default False
    """

    def __init__(self, filename: PathLike, writable: bool = False) -> None:
        self.filename = filename
        self.writable = writable
        self._file: BinaryIO | None = open(filename, "r+b" if writable else "rb")

        try:
            self._n_frames, self._n_atoms, self._offset = read_header(self._file)
        except DCDError:
            self._release()
            raise

        self._file.seek(self._offset, io.SEEK_SET)
        logger.debug(
            "opened %s: %d frames, %d atoms, frame data at byte %d",
            filename,
            self._n_frames,
            self._n_atoms,
            self._offset,
        )

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __len__(self) -> int:
        return self._n_frames

    def __repr__(self) -> str:
        return (
            f"DCDFile({self.filename!r}, n_frames={self._n_frames}, "
            f"n_atoms={self._n_atoms})"
        )

    @property
    def n_frames(self) -> int:
        return self._n_frames

    @property
    def n_atoms(self) -> int:
        return self._n_atoms

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def frame_size(self) -> int:
        return frame_size(self._n_atoms)

    @property
    def closed(self) -> bool:
        return self._file is None

    @property
    def _handle(self) -> BinaryIO:
        if self._file is None:
            raise ValueError(f"I/O operation on closed DCD file: {self.filename}")
        return self._file

    def _release(self) -> None:
        handle, self._file = self._file, None
        if handle is not None:
            handle.close()

    def close(self) -> None:
        self._release()

    def go_to_frame(self, frame: int) -> None:
        """Move the cursor to the start of `frame` (no bounds check)."""
        self._handle.seek(self._offset + frame * self.frame_size, io.SEEK_SET)

    def next_frame(self) -> None:
        self._handle.seek(self.frame_size, io.SEEK_CUR)

    def current_frame(self) -> int:
        return (self._handle.tell() - self._offset) // self.frame_size

    def read_unit_cell_block(self) -> Float1DArray:
        """All six unit cell values of the current frame, in file order."""
        f = self._handle
        start = f.tell()
        try:
            record = _read_exact(f, UNIT_CELL_RECORD_SIZE)
        finally:
            f.seek(start, io.SEEK_SET)

        return np.array(UNIT_CELL.unpack_from(record, MARKER_SIZE), dtype=np.float64)

    def read_unit_cell(self) -> Float1DArray:
        """Cell lengths A, B and C of the current frame."""
        return self.read_unit_cell_block()[list(UNIT_CELL_LENGTH_INDICES)]

    def _read_floats(self) -> Coord1DArray:
        data = _read_exact(self._handle, FLOAT_SIZE * self._n_atoms)
        return np.frombuffer(data, dtype=COORD_DTYPE).astype(np.float32)

    def read_coords(self) -> tuple[Coord1DArray, Coord1DArray, Coord1DArray]:
        """x, y and z coordinate arrays of the current frame."""
        f = self._handle
        start = f.tell()
        try:
            f.seek(start + UNIT_CELL_RECORD_SIZE + MARKER_SIZE, io.SEEK_SET)
            xs = self._read_floats()
            f.seek(2 * MARKER_SIZE, io.SEEK_CUR)
            ys = self._read_floats()
            f.seek(2 * MARKER_SIZE, io.SEEK_CUR)
            zs = self._read_floats()
        finally:
            f.seek(start, io.SEEK_SET)

        return xs, ys, zs

    def _write_floats(self, values: npt.ArrayLike) -> None:
        data = np.ascontiguousarray(values, dtype=COORD_DTYPE).tobytes()
        written = self._handle.write(data)
        if written != len(data):
            raise DCDError(
                f"short write to {self.filename}: expected {len(data)} bytes, "
                f"wrote {written}"
            )

    def write_coords(
        self, xs: npt.ArrayLike, ys: npt.ArrayLike, zs: npt.ArrayLike
    ) -> None:
        """Overwrite the x, y and z coordinates of the current frame."""
        if not self.writable:
            raise DCDError(f"{self.filename} was not opened writable")

        arrays = [np.asarray(values) for values in (xs, ys, zs)]
        for dim, values in zip("xyz", arrays):
            if values.shape != (self._n_atoms,):
                raise ValueError(
                    f"{dim} coordinates must have shape ({self._n_atoms},), "
                    f"got {values.shape}"
                )

        f = self._handle
        start = f.tell()
        try:
            f.seek(start + UNIT_CELL_RECORD_SIZE + MARKER_SIZE, io.SEEK_SET)
            self._write_floats(arrays[0])
            f.seek(2 * MARKER_SIZE, io.SEEK_CUR)
            self._write_floats(arrays[1])
            f.seek(2 * MARKER_SIZE, io.SEEK_CUR)
            self._write_floats(arrays[2])
            f.flush()
        finally:
            f.seek(start, io.SEEK_SET)

    def read_frames(self, frames: Sequence[int] | Int1DArray) -> TrajArray:
        """Positions of `frames` as an array of shape (len(frames), n_atoms, 3).

        The cursor is restored afterwards.
        """
        start = self._handle.tell()
        positions = np.zeros((len(frames), self._n_atoms, 3), dtype=np.float32)

        try:
            for i, frame in enumerate(frames):
                self.go_to_frame(int(frame))
                positions[i] = np.stack(self.read_coords(), axis=-1)
        finally:
            self._handle.seek(start, io.SEEK_SET)

        return positions


def open_dcd(filename: PathLike, writable: bool = False) -> DCDFile:
    return DCDFile(filename, writable=writable)


def _write_record(f: BinaryIO, payload: bytes) -> None:
    marker = INT32.pack(len(payload))
    f.write(marker)
    f.write(payload)
    f.write(marker)


def _unit_cell_block(unit_cell: npt.ArrayLike) -> tuple[float, ...]:
    values = np.asarray(unit_cell, dtype=np.float64)

    if values.shape == (UNIT_CELL_VALUES,):
        return tuple(values.tolist())

    if values.shape == (3,):
        # lengths only, angles default to 90 degrees
        block = [0.0, 90.0, 0.0, 90.0, 90.0, 0.0]
        for index, length in zip(UNIT_CELL_LENGTH_INDICES, values.tolist()):
            block[index] = length
        return tuple(block)

    raise ValueError(f"invalid unit cell shape: {values.shape}")


def write_dcd(
    filename: PathLike,
    positions: npt.ArrayLike,
    unit_cells: npt.ArrayLike | None = None,
    titles: Sequence[str] = (),
    timestep: float = 1.0,
) -> None:
    """Write a complete DCD file readable by `DCDFile`.

    Parameters
    ----------
    filename : PathLike
        Output path, overwritten if it exists
    positions : npt.ArrayLike
        Coordinates with shape (n_frames, n_atoms, 3)
    unit_cells : npt.ArrayLike | None, optional
        Per-frame unit cells, either the six raw values (n_frames, 6) or the
        lengths A, B, C (n_frames, 3); zeros if None
    titles : Sequence[str], optional
        Title lines, each truncated or padded to 80 characters
    timestep : float, optional
        Time between frames stored in the header, by default 1.0
    """
    positions = np.asarray(positions, dtype=COORD_DTYPE)
    if positions.ndim != 3 or positions.shape[-1] != 3:
        raise ValueError(
            f"positions must have shape (n_frames, n_atoms, 3), got {positions.shape}"
        )

    n_frames, n_atoms, _ = positions.shape

    if unit_cells is None:
        cells = [(0.0,) * UNIT_CELL_VALUES] * n_frames
    else:
        cells = [_unit_cell_block(cell) for cell in np.asarray(unit_cells)]
        if len(cells) != n_frames:
            raise ValueError(f"expected {n_frames} unit cells, got {len(cells)}")

    control = [0] * 20
    control[0] = n_frames
    control[2] = 1
    control[3] = n_frames
    control[10] = 1
    control[19] = CHARMM_VERSION

    control_payload = b"CORD" + struct.pack("<9i", *control[:9])
    control_payload += struct.pack("<f", timestep)
    control_payload += struct.pack("<10i", *control[10:])

    title_payload = INT32.pack(len(titles)) + b"".join(
        title.encode("ascii", errors="replace")[:TITLE_LINE_SIZE].ljust(TITLE_LINE_SIZE)
        for title in titles
    )

    with open(filename, "wb") as f:
        _write_record(f, control_payload)
        _write_record(f, title_payload)
        _write_record(f, INT32.pack(n_atoms))

        for cell, frame in zip(cells, positions):
            _write_record(f, UNIT_CELL.pack(*cell))
            for dim in range(3):
                _write_record(f, np.ascontiguousarray(frame[:, dim]).tobytes())

    logger.debug("wrote %d frames of %d atoms to %s", n_frames, n_atoms, filename)
