"""Fixed-column PDB reader.

Only two record types are read: the first ``CRYST1`` record (unit cell) and
every ``ATOM`` record. Alongside the standard ATOM columns a second,
"nonstandard" set of wider fields is read from the same line, for files that
overflow the serial, residue name or residue number columns, or that keep a
segment name in the unused columns after the temperature factor.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from mdfiles.cell import Cell
from mdfiles.types import PathLike

from .base_parser import extract_field, parse_float, parse_int, read_lines

logger = logging.getLogger(__name__)

CRYST_RECORD = "CRYST1"
ATOM_RECORD = "ATOM  "

# (start column, width), zero-based
CRYST_A = (6, 9)
CRYST_B = (15, 9)
CRYST_C = (24, 9)
CRYST_ALPHA = (33, 7)
CRYST_BETA = (40, 7)
CRYST_GAMMA = (47, 7)
CRYST_SPACE_GROUP = (55, 11)
CRYST_Z = (66, 4)

ATOM_SERIAL = (6, 5)
ATOM_NAME = (12, 4)
ATOM_ALT_LOC = (16, 1)
ATOM_RES_NAME = (17, 3)
ATOM_CHAIN_ID = (21, 1)
ATOM_RES_SEQ = (22, 4)
ATOM_I_CODE = (26, 1)
ATOM_X = (30, 8)
ATOM_Y = (38, 8)
ATOM_Z = (46, 8)
ATOM_OCCUPANCY = (54, 6)
ATOM_TEMP_FACTOR = (60, 6)
ATOM_ELEMENT = (76, 2)
ATOM_CHARGE = (78, 2)

# nonstandard interpretation of the same line
ATOM_WIDE_SERIAL = (6, 6)
ATOM_WIDE_RES_NAME = (17, 4)
ATOM_WIDE_RES_SEQ = (22, 5)
ATOM_SEGMENT = (66, 10)


@dataclass
class CrystalCell:
    valid: bool = False
    a: float = 0.0
    b: float = 0.0
    c: float = 0.0
    alpha: float = 0.0
    beta: float = 0.0
    gamma: float = 0.0
    space_group: str = ""
    z: int = -1

    def to_cell(self) -> Cell:
        if not self.valid:
            raise ValueError("cannot build cell vectors from an invalid CRYST1 record")
        return Cell.from_parameters(
            self.a, self.b, self.c, self.alpha, self.beta, self.gamma
        )


@dataclass
class PDBAtom:
    serial: int = -1
    name: str = ""
    alt_loc: str = ""
    res_name: str = ""
    chain_id: str = ""
    res_seq: int = 0
    i_code: str = ""
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    occupancy: float = 0.0
    temp_factor: float = 0.0
    element: str = ""
    charge: str = ""
    # nonstandard fields
    mserial: str = ""
    mres_name: str = ""
    mres_seq: int = 0
    mseg: str = ""

    @property
    def coords(self) -> tuple[float, float, float]:
        return (self.x, self.y, self.z)


@dataclass
class PDBDocument:
    cell: CrystalCell = field(default_factory=CrystalCell)
    atoms: list[PDBAtom] | None = None

    @property
    def valid(self) -> bool:
        return self.atoms is not None

    @property
    def natom(self) -> int:
        return -1 if self.atoms is None else len(self.atoms)


def _field(line: str, span: tuple[int, int]) -> str:
    return extract_field(line, *span)


def parse_cryst_record(line: str) -> CrystalCell:
    return CrystalCell(
        valid=True,
        a=parse_float(_field(line, CRYST_A)),
        b=parse_float(_field(line, CRYST_B)),
        c=parse_float(_field(line, CRYST_C)),
        alpha=parse_float(_field(line, CRYST_ALPHA)),
        beta=parse_float(_field(line, CRYST_BETA)),
        gamma=parse_float(_field(line, CRYST_GAMMA)),
        space_group=_field(line, CRYST_SPACE_GROUP),
        z=parse_int(_field(line, CRYST_Z)),
    )


def parse_atom_record(line: str) -> PDBAtom:
    return PDBAtom(
        serial=parse_int(_field(line, ATOM_SERIAL)),
        name=_field(line, ATOM_NAME),
        alt_loc=_field(line, ATOM_ALT_LOC),
        res_name=_field(line, ATOM_RES_NAME),
        chain_id=_field(line, ATOM_CHAIN_ID),
        res_seq=parse_int(_field(line, ATOM_RES_SEQ)),
        i_code=_field(line, ATOM_I_CODE),
        x=parse_float(_field(line, ATOM_X)),
        y=parse_float(_field(line, ATOM_Y)),
        z=parse_float(_field(line, ATOM_Z)),
        occupancy=parse_float(_field(line, ATOM_OCCUPANCY)),
        temp_factor=parse_float(_field(line, ATOM_TEMP_FACTOR)),
        element=_field(line, ATOM_ELEMENT),
        charge=_field(line, ATOM_CHARGE),
        mserial=_field(line, ATOM_WIDE_SERIAL),
        mres_name=_field(line, ATOM_WIDE_RES_NAME),
        mres_seq=parse_int(_field(line, ATOM_WIDE_RES_SEQ)),
        mseg=_field(line, ATOM_SEGMENT),
    )


def read_cryst(lines: list[str]) -> CrystalCell:
    """Return the first CRYST1 record, or an invalid cell if there is none."""
    for line in lines:
        if not line:
            continue
        if line.startswith(CRYST_RECORD):
            return parse_cryst_record(line)

    return CrystalCell()


def read_atoms(lines: list[str]) -> list[PDBAtom]:
    return [
        parse_atom_record(line)
        for line in lines
        if line and line.startswith(ATOM_RECORD)
    ]


def read_pdb(filename: PathLike) -> PDBDocument:
    """Parse a PDB file.

    A file that cannot be opened, or that is empty, gives a document with
    ``atoms=None`` and an invalid cell. Otherwise the cell comes from the first
    CRYST1 record (if any) and the atoms from every ATOM record, in file order.
    """
    try:
        lines = read_lines(filename)
    except OSError as err:
        logger.warning("could not read PDB file %s: %s", filename, err)
        return PDBDocument()

    if not lines:
        logger.warning("empty PDB file: %s", filename)
        return PDBDocument()

    cell = read_cryst(lines)
    atoms = read_atoms(lines)

    logger.debug(
        "read %d atoms from %s (unit cell %s)",
        len(atoms),
        filename,
        "found" if cell.valid else "not found",
    )
    return PDBDocument(cell=cell, atoms=atoms)
