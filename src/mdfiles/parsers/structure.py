from __future__ import annotations

import logging
import string
from dataclasses import dataclass

from mdfiles.types import PathLike

from .file_formats import STRUCTURE_FORMATS, FileFormat, guess_file_format_str
from .pdb import PDBAtom, read_pdb
from .psf import PSFAtom, read_psf

logger = logging.getLogger(__name__)


@dataclass
class CommonAtom:
    segment: str = ""
    resid: str = ""
    restype: str = ""
    name: str = ""
    charge: float = 0.0


@dataclass
class StructureAtoms:
    atoms: list[CommonAtom] | None = None

    @property
    def natom(self) -> int:
        return -1 if self.atoms is None else len(self.atoms)

    def __len__(self) -> int:
        return 0 if self.atoms is None else len(self.atoms)


def decode_pdb_charge(code: str) -> float:
    """Decode a PDB charge field such as ``"2-"`` into a signed number.

    Anything other than one decimal digit followed by ``+`` or ``-`` is 0.0.
    """
    if len(code) < 2 or code[0] not in string.digits or code[1] not in "+-":
        return 0.0

    magnitude = float(code[0])
    return -magnitude if code[1] == "-" else magnitude


def common_atom_from_psf(atom: PSFAtom) -> CommonAtom:
    return CommonAtom(
        segment=atom.segment,
        resid=atom.resid,
        restype=atom.resname,
        name=atom.name,
        charge=atom.charge,
    )


def common_atom_from_pdb(atom: PDBAtom) -> CommonAtom:
    return CommonAtom(
        segment=atom.mseg,
        resid=str(atom.mres_seq),
        restype=atom.mres_name,
        name=atom.name,
        charge=decode_pdb_charge(atom.charge),
    )


def read_struct(filename: PathLike) -> StructureAtoms:
    """Read the atoms of a PSF or PDB file into a format independent list.

    The format is chosen from the file extension. Unsupported extensions and
    unreadable or invalid files give ``StructureAtoms(atoms=None)``.
    """
    file_format = guess_file_format_str(filename)

    if file_format not in STRUCTURE_FORMATS:
        logger.warning("cannot read atoms from %s: unsupported extension", filename)
        return StructureAtoms()

    match FileFormat(file_format):
        case FileFormat.PSF:
            psf = read_psf(filename)
            if not psf.valid or psf.atoms is None:
                return StructureAtoms()
            return StructureAtoms([common_atom_from_psf(atom) for atom in psf.atoms])

        case FileFormat.PDB:
            pdb = read_pdb(filename)
            if pdb.atoms is None:
                return StructureAtoms()
            return StructureAtoms([common_atom_from_pdb(atom) for atom in pdb.atoms])
