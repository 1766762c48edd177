import os.path
from enum import StrEnum

from mdfiles.types import PathLike


class FileFormat(StrEnum):
    PDB = "pdb"
    PSF = "psf"
    DCD = "dcd"


STRUCTURE_FORMATS = frozenset({FileFormat.PDB, FileFormat.PSF})
TRAJECTORY_FORMATS = frozenset({FileFormat.DCD})


class InvalidTrajectoryFormatError(NotImplementedError):
    pass


def guess_file_format_str(filename_or_obj: PathLike) -> str | None:
    if isinstance(filename_or_obj, (bytes, bytearray)):
        filename_or_obj = filename_or_obj.decode()

    elif isinstance(filename_or_obj, memoryview):
        filename_or_obj = filename_or_obj.tobytes().decode()

    try:
        filename = os.path.basename(filename_or_obj)
        _, ext = os.path.splitext(filename)

    except TypeError:
        return None

    ext = ext[1:].lower()

    if ext in FileFormat:
        return ext

    return None


def get_valid_file_format(file_format: str | None) -> FileFormat:
    if file_format is None:
        raise InvalidTrajectoryFormatError(f"invalid file format: {file_format}")

    if file_format.lower() not in FileFormat:
        raise InvalidTrajectoryFormatError(f"invalid file format: {file_format}")

    return FileFormat(file_format.lower())


def get_valid_trajectory_format(file_format: str | None) -> FileFormat:
    valid_format = get_valid_file_format(file_format)

    if valid_format not in TRAJECTORY_FORMATS:
        raise InvalidTrajectoryFormatError(
            f"not a trajectory format: {valid_format.value}"
        )

    return valid_format
