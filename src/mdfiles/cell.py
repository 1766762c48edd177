from __future__ import annotations

from typing import Literal, Self

import numpy as np
import numpy.typing as npt

from mdfiles.types import CellArray, SingleDType

__all__ = ["Cell", "ShapeError", "cell_vectors_from_parameters", "normalize_cell"]


class ShapeError(Exception):
    def __init__(
        self,
        invalid_shape: tuple[int, ...],
        target_shape: tuple[int, ...] | None = None,
    ) -> None:
        self.message = f"Invalid shape: {invalid_shape}."

        if target_shape is not None:
            self.message += f" Shape must be: {target_shape}."
        super().__init__(self.message)


def cell_vectors_from_parameters(
    lengths: npt.ArrayLike,
    angles: npt.ArrayLike = (90.0, 90.0, 90.0),
) -> CellArray:
    """Build cell vectors from lengths ``(a, b, c)`` and angles in degrees.

    Vector A lies on x and B in the xy plane. Both arguments may carry a
    leading frame dimension, i.e. shape ``(3,)`` or ``(n_frames, 3)``.

    Parameters
    ----------
    lengths : npt.ArrayLike
        Cell lengths a, b, c
    angles : npt.ArrayLike, optional
        Cell angles alpha, beta, gamma in degrees, by default right angles

    Returns
    -------
    CellArray
        Array of cell vectors with shape (n_frames, 3, 3)
    """
    lengths = np.atleast_2d(np.asarray(lengths, dtype=np.float64))
    angles = np.atleast_2d(np.asarray(angles, dtype=np.float64))

    if lengths.shape[-1] != 3:
        raise ShapeError(invalid_shape=lengths.shape, target_shape=(-1, 3))
    if angles.shape[-1] != 3:
        raise ShapeError(invalid_shape=angles.shape, target_shape=(-1, 3))

    lengths, angles = np.broadcast_arrays(lengths, angles)
    a, b, c = lengths.T
    cos_alpha, cos_beta, cos_gamma = np.cos(np.radians(angles)).T
    sin_gamma = np.sin(np.radians(angles[:, 2]))

    # exact zeros for right angles keep orthorhombic cells diagonal
    cos_alpha, cos_beta, cos_gamma = (
        np.where(np.isclose(cos, 0.0, atol=1e-12), 0.0, cos)
        for cos in (cos_alpha, cos_beta, cos_gamma)
    )

    cy = (cos_alpha - cos_beta * cos_gamma) / sin_gamma
    cz = np.sqrt(np.clip(1.0 - cos_beta**2 - cy**2, 0.0, None))

    vectors = np.zeros((len(a), 3, 3), dtype=np.float64)
    vectors[:, 0, 0] = a
    vectors[:, 1, 0] = b * cos_gamma
    vectors[:, 1, 1] = b * sin_gamma
    vectors[:, 2, 0] = c * cos_beta
    vectors[:, 2, 1] = c * cy
    vectors[:, 2, 2] = c * cz
    return vectors


def normalize_cell(
    cell: npt.ArrayLike,
    n_frames: int | None = None,
    dtype: SingleDType | None = None,
    copy: bool | None = None,
) -> CellArray:
    """Normalize the input to match the standard shape of (n_frames, 3, 3)

    Parameters
    ----------
    cell : npt.ArrayLike
        Input cell
    n_frames : int | None, optional
        Specific number of frames, by default None
    dtype : SingleDType | None, optional
        dtype for the array, by default None
    copy : bool | None, optional
        Controls whether the input cell needs to be copied, by default None

    Returns
    -------
    CellArray
        Array with dimensions normalized into (n_frames, 3, 3)

    Raises
    ------
    ValueError
        If broadcasting to the normalized shape is not possible
    ShapeError
        If the input cell cannot be normalized
    """
    cell = np.asarray(cell, dtype=dtype, copy=copy)

    if n_frames is None:
        n_frames = 1

    match (cell.ndim, cell.shape):
        # Scalar
        case (0, ()):
            normalized_cell = np.broadcast_to(
                np.eye(3, dtype=dtype) * cell, (n_frames, 3, 3)
            )

        # Cell lengths
        case (1, (3,)):
            normalized_cell = np.broadcast_to(np.diag(cell), (n_frames, 3, 3))

        # Cell lengths per-frame, e.g. DCD unit cells
        case (2, (N, 3)) if N != 3:
            if n_frames not in (1, N):
                raise ValueError(
                    f"Number of frames ({n_frames=}) does not match shape of array ({cell.shape=})"
                )
            normalized_cell = cell[:, :, np.newaxis] * np.eye(3, dtype=cell.dtype)

        # Cell vectors (3 frames of lengths must be given as vectors)
        case (2, (3, 3)):
            normalized_cell = np.broadcast_to(cell, (n_frames, 3, 3))

        # Cell vectors per-frame
        case (3, (N, 3, 3)):
            if N != n_frames and n_frames != 1:
                raise ValueError(
                    f"Number of frames ({n_frames=}) does not match shape of array ({cell.shape=})"
                )
            normalized_cell: CellArray = cell

        case (_, _):
            raise ShapeError(invalid_shape=cell.shape, target_shape=(-1, 3, 3))

    return normalized_cell


class Cell:
    def __init__(
        self,
        array: npt.ArrayLike,
        n_frames: int | None = None,
        dtype: SingleDType = np.float64,
        copy: bool | None = None,
    ) -> None:
        self._array = normalize_cell(array, n_frames=n_frames, dtype=dtype, copy=copy)

    @classmethod
    def from_lengths(cls, lengths: npt.ArrayLike) -> Self:
        """Orthorhombic cell from per-frame lengths of shape (n_frames, 3)."""
        return cls(cell_vectors_from_parameters(lengths))

    @classmethod
    def from_parameters(
        cls,
        a: float,
        b: float,
        c: float,
        alpha: float,
        beta: float,
        gamma: float,
    ) -> Self:
        return cls(cell_vectors_from_parameters((a, b, c), (alpha, beta, gamma)))

    def __len__(self) -> int:
        return self._array.shape[0]

    def __array__(
        self, dtype: SingleDType | None = None, copy: bool | None = None
    ) -> CellArray:
        return np.asarray(self._array, dtype=dtype, copy=copy)

    @property
    def array(self) -> CellArray:
        return self._array

    @property
    def lengths(self) -> np.ndarray[tuple[int, Literal[3]], np.dtype[np.float64]]:
        return np.linalg.norm(self._array, axis=-1)

    @property
    def angles(self) -> np.ndarray[tuple[int, Literal[3]], np.dtype[np.float64]]:
        """Angles alpha (B, C), beta (A, C) and gamma (A, B) in degrees."""
        a, b, c = (self._array[:, i, :] for i in range(3))
        lengths = self.lengths

        def angle(u, v, norm):
            cos = np.einsum("ij,ij->i", u, v) / norm
            return np.degrees(np.arccos(np.clip(cos, -1.0, 1.0)))

        return np.stack(
            [
                angle(b, c, lengths[:, 1] * lengths[:, 2]),
                angle(a, c, lengths[:, 0] * lengths[:, 2]),
                angle(a, b, lengths[:, 0] * lengths[:, 1]),
            ],
            axis=-1,
        )
