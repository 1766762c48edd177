"""CHARMM/XPLOR PSF topology reader.

The first line of a PSF is a signature such as ``PSF EXT CMAP CHEQ XPLOR``.
Each keyword toggles one aspect of the atom record layout independently:

=========  ==========================================================
``EXT``    index column 10 wide instead of 8, label columns 8 wide
           instead of 4
``XPLOR``  atom type is a label rather than an integer type code; with
           ``EXT`` its column is 6 wide instead of 4
``CMAP     two extra 14 wide columns (CHEQ electronegativity and
CHEQ``     hardness) after IMOVE
``SLB``    one gap column and a 14 wide scattering length at the end
=========  ==========================================================

Which gives, for example, ``(I10,1X,A8,1X,A8,1X,A8,1X,A8,1X,A6,1X,2G14.6,I8)``
for ``PSF EXT XPLOR``. The DRUDE extension is not supported.

Sections follow the signature, each introduced by a ``<count> !N<TAG>`` header
and closed by a blank line. Only the atom section is required; any other
section that is missing or whose record count disagrees with its header is
dropped (set to ``None``) without affecting the rest of the document.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from enum import IntEnum, StrEnum
from typing import NamedTuple

from mdfiles.types import PathLike

from .base_parser import (
    LineCursor,
    extract_field,
    parse_float,
    parse_int,
    read_lines,
    scan_ints,
)

logger = logging.getLogger(__name__)

SIGNATURE_MARKER = "PSF"

INDEX_WIDTH = 8
EXT_INDEX_WIDTH = 10
LABEL_WIDTH = 4
EXT_LABEL_WIDTH = 8
TYPE_WIDTH = 4
EXT_XPLOR_TYPE_WIDTH = 6
REAL_WIDTH = 14
IMOVE_WIDTH = 8
GAP = 1


class Section(StrEnum):
    TITLE = "!NTITLE"
    ATOM = "!NATOM"
    BOND = "!NBOND"
    ANGLE = "!NTHETA"
    DIHEDRAL = "!NPHI"
    IMPROPER = "!NIMPHI"


class Mobility(IntEnum):
    LONE_PAIR = -1
    FREE = 0
    FIXED = 1


class Bond(NamedTuple):
    a: int
    b: int


class Angle(NamedTuple):
    a: int
    b: int
    c: int


class Dihedral(NamedTuple):
    a: int
    b: int
    c: int
    d: int


@dataclass(frozen=True)
class PSFSignature:
    valid: bool = False
    ext: bool = False
    cmapcheq: bool = False
    xplor: bool = False
    slb: bool = False

    @classmethod
    def from_header(cls, line: str) -> PSFSignature:
        if not line.startswith(SIGNATURE_MARKER):
            return cls()

        return cls(
            valid=True,
            ext="EXT" in line,
            cmapcheq="CMAP CHEQ" in line,
            xplor="XPLOR" in line,
            slb="SLB" in line,
        )

    @property
    def index_width(self) -> int:
        return EXT_INDEX_WIDTH if self.ext else INDEX_WIDTH

    @property
    def label_width(self) -> int:
        return EXT_LABEL_WIDTH if self.ext else LABEL_WIDTH

    @property
    def type_width(self) -> int:
        return EXT_XPLOR_TYPE_WIDTH if (self.ext and self.xplor) else TYPE_WIDTH


@dataclass
class PSFAtom:
    segment: str = ""
    resid: str = ""
    resname: str = ""
    name: str = ""
    atom_type: str = ""
    charge: float = 0.0
    mass: float = 0.0
    imove: int = 0
    ech: float = 0.0
    eha: float = 0.0
    b: float = 0.0

    @property
    def mobility(self) -> Mobility | None:
        try:
            return Mobility(self.imove)
        except ValueError:
            return None


@dataclass
class PSFDocument:
    signature: PSFSignature = field(default_factory=PSFSignature)
    titles: list[str] | None = None
    atoms: list[PSFAtom] | None = None
    bonds: list[Bond] | None = None
    angles: list[Angle] | None = None
    dihedrals: list[Dihedral] | None = None
    impropers: list[Dihedral] | None = None

    @property
    def valid(self) -> bool:
        return self.signature.valid and self.atoms is not None

    @property
    def natom(self) -> int:
        return -1 if self.atoms is None else len(self.atoms)


def parse_atom_line(line: str, signature: PSFSignature) -> PSFAtom:
    """Slice one atom record using the column widths selected by `signature`.

    The leading index column is not checked here.
    """
    offset = signature.index_width + GAP

    def take(width: int) -> str:
        nonlocal offset
        value = extract_field(line, offset, width)
        offset += width
        return value

    label_width = signature.label_width
    atom = PSFAtom()

    atom.segment = take(label_width)
    offset += GAP
    atom.resid = take(label_width)
    offset += GAP
    atom.resname = take(label_width)
    offset += GAP
    atom.name = take(label_width)
    offset += GAP
    atom.atom_type = take(signature.type_width)
    offset += GAP
    atom.charge = parse_float(take(REAL_WIDTH))
    atom.mass = parse_float(take(REAL_WIDTH))
    atom.imove = parse_int(take(IMOVE_WIDTH))

    if signature.cmapcheq:
        atom.ech = parse_float(take(REAL_WIDTH))
        atom.eha = parse_float(take(REAL_WIDTH))

    if signature.slb:
        offset += GAP
        atom.b = parse_float(take(REAL_WIDTH))

    return atom


def read_count(cursor: LineCursor, section: Section) -> int | None:
    """Advance past the header of `section` and return its declared count.

    Tokens are scanned until one equals the section tag (optionally followed by
    a colon, as in ``!NBOND: bonds``); the count is the token just before it.
    Returns None if the tag is never found or the preceding token is not an
    integer, so a malformed count marks the section absent rather than empty
    (CHARMM's own ``atoi`` reading would give 0). Any text after the tag on
    the header line is skipped.
    """
    previous: str | None = None

    for line in cursor:
        for token in line.split():
            if token.rstrip(":") == section.value:
                try:
                    return int(previous) if previous is not None else None
                except ValueError:
                    return None
            previous = token

    return None


def section_lines(cursor: LineCursor) -> Iterator[str]:
    """Yield the body lines of the current section.

    Stops at end of file or a blank line. A line containing ``!`` means the
    blank separator is missing; it is left unread for the next header scan.
    """
    for line in cursor:
        if not line.strip():
            return
        if "!" in line:
            cursor.push_back()
            return
        yield line


def _checked[T](section: Section, declared: int, records: list[T]) -> list[T] | None:
    if len(records) != declared:
        logger.warning(
            "discarding %s section: header declares %d records, found %d",
            section.value,
            declared,
            len(records),
        )
        return None

    logger.debug("read %d records for %s", len(records), section.value)
    return records


def read_titles(cursor: LineCursor) -> list[str] | None:
    declared = read_count(cursor, Section.TITLE)
    if declared is None:
        logger.debug("no %s header found", Section.TITLE.value)
        return None

    return _checked(Section.TITLE, declared, list(section_lines(cursor)))


def read_atoms(cursor: LineCursor, signature: PSFSignature) -> list[PSFAtom] | None:
    declared = read_count(cursor, Section.ATOM)
    if declared is None:
        logger.warning("no %s header found", Section.ATOM.value)
        return None

    atoms: list[PSFAtom] = []
    for line in section_lines(cursor):
        index = parse_int(extract_field(line, 0, signature.index_width))
        if index != len(atoms) + 1:
            break
        atoms.append(parse_atom_line(line, signature))

    return _checked(Section.ATOM, declared, atoms)


def read_connectivity[T](
    cursor: LineCursor,
    section: Section,
    record_type: Callable[..., T],
    arity: int,
    per_line: int,
) -> list[T] | None:
    """Read a section of packed index groups (bonds, angles, dihedrals).

    Each line holds up to `per_line` groups of `arity` one-based atom indices;
    an incomplete trailing group is ignored. Records hold zero-based indices.
    """
    declared = read_count(cursor, section)
    if declared is None:
        logger.debug("no %s header found", section.value)
        return None

    records: list[T] = []
    for line in section_lines(cursor):
        values = scan_ints(line, arity * per_line)
        for start in range(0, len(values) - arity + 1, arity):
            records.append(
                record_type(*(value - 1 for value in values[start : start + arity]))
            )

    return _checked(section, declared, records)


def read_psf(filename: PathLike) -> PSFDocument:
    """Parse a PSF file into a PSFDocument.

    Check `PSFDocument.valid` before use: it is False if the file cannot be
    read, the signature line is not recognized, or the atom section is missing
    or inconsistent. In those cases no later section is read.
    """
    try:
        lines = read_lines(filename)
    except OSError as err:
        logger.warning("could not read PSF file %s: %s", filename, err)
        return PSFDocument()

    if not lines:
        logger.warning("empty PSF file: %s", filename)
        return PSFDocument()

    signature = PSFSignature.from_header(lines[0])
    if not signature.valid:
        logger.warning("%s is not a PSF file (bad signature line)", filename)
        return PSFDocument(signature=signature)

    logger.debug("PSF signature for %s: %s", filename, signature)

    cursor = LineCursor(lines[1:])
    document = PSFDocument(signature=signature)

    document.titles = read_titles(cursor)

    document.atoms = read_atoms(cursor, signature)
    if document.atoms is None:
        logger.warning("invalid atom section in %s, skipping the rest", filename)
        return document

    document.bonds = read_connectivity(cursor, Section.BOND, Bond, 2, 4)
    document.angles = read_connectivity(cursor, Section.ANGLE, Angle, 3, 3)
    document.dihedrals = read_connectivity(cursor, Section.DIHEDRAL, Dihedral, 4, 2)
    document.impropers = read_connectivity(cursor, Section.IMPROPER, Dihedral, 4, 2)

    return document
