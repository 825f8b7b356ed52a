"""
Genetic code tables: start/stop classification and codon translation on packed sequences.

Codons are addressed by their 6-bit index ``code0 << 4 | code1 << 2 | code2`` (A=0, C=1, G=2, T=3), so every
query is a lookup into a 64-entry array built once per table at import time.
"""
from typing import Iterable, Final, ClassVar, Union
from warnings import warn

import numpy as np

from orfcore.core.alphabet import Alphabet
from orfcore.containers.seq import PackedSeq
from orfcore.lib.resources import OrfcoreWarning


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class GeneticCodeError(Exception):
    """Raised when a genetic code is invalid or unknown."""


class InvalidTableIdError(GeneticCodeError):
    """Raised when a translation table number is not recognized."""


class TranslationWarning(OrfcoreWarning):
    """Issued when a translated region is not a whole number of codons."""


# Constants ------------------------------------------------------------------------------------------------------------
# The standard code in codon-index order (AAA, AAC, AAG, AAT, ACA, ...)
STANDARD: Final = b'KNKNTTTTRSRSIIMIQHQHPPPPRRRRLLLLEDEDAAAAGGGGVVVV*Y*YSSSS*CWCLFLF'

# Only ATG/GTG/TTG are supported as initiation codons, even where a table lists others.
# id: (start codons, reassignments relative to the standard code; b'*' adds a stop)
TABLES: Final = {
    1: ((b'ATG',), {}),
    2: ((b'ATG', b'GTG'), {b'AGA': b'*', b'AGG': b'*', b'ATA': b'M', b'TGA': b'W'}),
    3: ((b'ATG',), {b'ATA': b'M', b'CTA': b'T', b'CTC': b'T', b'CTG': b'T', b'CTT': b'T', b'TGA': b'W'}),
    4: ((b'ATG', b'GTG', b'TTG'), {b'TGA': b'W'}),
    5: ((b'ATG', b'GTG', b'TTG'), {b'AGA': b'S', b'AGG': b'S', b'ATA': b'M', b'TGA': b'W'}),
    6: ((b'ATG',), {b'TAA': b'Q', b'TAG': b'Q'}),
    9: ((b'ATG', b'GTG'), {b'AAA': b'N', b'AGA': b'S', b'AGG': b'S', b'TGA': b'W'}),
    10: ((b'ATG',), {b'TGA': b'C'}),
    11: ((b'ATG', b'GTG', b'TTG'), {}),
    12: ((b'ATG',), {b'CTG': b'S'}),
    13: ((b'ATG', b'GTG', b'TTG'), {b'AGA': b'G', b'AGG': b'G', b'ATA': b'M', b'TGA': b'W'}),
    14: ((b'ATG',), {b'AAA': b'N', b'AGA': b'S', b'AGG': b'S', b'TAA': b'Y', b'TGA': b'W'}),
    15: ((b'ATG',), {b'TAG': b'Q'}),
    16: ((b'ATG',), {b'TAG': b'L'}),
    21: ((b'ATG', b'GTG'), {b'AAA': b'N', b'AGA': b'S', b'AGG': b'S', b'ATA': b'M', b'TGA': b'W'}),
    22: ((b'ATG',), {b'TAG': b'L', b'TCA': b'*'}),
    23: ((b'ATG', b'GTG'), {b'TTA': b'*'}),
    24: ((b'ATG', b'GTG', b'TTG'), {b'AGA': b'S', b'AGG': b'K', b'TGA': b'W'}),
    25: ((b'ATG', b'GTG', b'TTG'), {b'TGA': b'G'}),
}

START_CODONS: Final = (b'ATG', b'GTG', b'TTG')
OTHER_START: Final = len(START_CODONS)


def codon_index(codon: Union[bytes, str]) -> int:
    """
    Returns the 6-bit index of a codon given as text.

    Raises:
        GeneticCodeError: If the codon is not three unambiguous bases.
    """
    if isinstance(codon, str): codon = codon.encode(Alphabet.ENCODING, errors='replace')
    if len(codon) != 3 or Alphabet.DNA.mask(codon).any():
        raise GeneticCodeError(f"Invalid codon {codon!r}")
    c = Alphabet.DNA.encode(codon)
    return (int(c[0]) << 4) | (int(c[1]) << 2) | int(c[2])


def start_text(start_type: int) -> str:
    """Returns the codon text for a start type (0 ATG, 1 GTG, 2 TTG)."""
    if not 0 <= start_type < OTHER_START: raise ValueError(f"Invalid start type {start_type}")
    return START_CODONS[start_type].decode(Alphabet.ENCODING)


_START_TYPES = np.full(64, OTHER_START, dtype=np.int8)
for _i, _codon in enumerate(START_CODONS): _START_TYPES[codon_index(_codon)] = _i
_START_TYPES.flags.writeable = False

_GC_CODES = np.array([c in (PackedSeq.C, PackedSeq.G) for c in range(4)], dtype=np.bool_)


# Classes --------------------------------------------------------------------------------------------------------------
class GeneticCode:
    """
    Represents a genetic code table for start/stop classification and translation.

    Instances for the recognized NCBI table numbers are built once at import and retrieved with
    ``GeneticCode.get()``; they are read-only and safe to share.

    Examples:
        >>> code = GeneticCode.get(11)
        >>> seq = Alphabet.DNA.pack(b'ATGAAATAG')
        >>> code.is_start(seq, 0), code.translate(seq, 0, is_init=True), code.is_stop(seq, 6)
        (True, 'M', True)
    """
    __slots__ = ('_id', '_amino', '_init', '_starts', '_stops')
    _REGISTRY: ClassVar[dict[int, 'GeneticCode']] = {}
    BACTERIA: ClassVar['GeneticCode']

    def __init__(self, table_id: int, table: bytes, starts: Iterable[bytes] = ()):
        """Initializes a genetic code.

        Args:
            table_id: The translation table number.
            table: 64-byte ASCII string of residues in codon-index order; ``*`` marks stops.
            starts: Iterable of start codons (e.g. ``[b'ATG', b'GTG']``).

        Raises:
            GeneticCodeError: If the table is malformed or a start codon is also a stop.
        """
        if len(table) != 64: raise GeneticCodeError(f"A genetic code needs 64 residues, got {len(table)}")
        self._id = table_id
        self._amino = np.frombuffer(table, dtype=Alphabet.DTYPE)
        self._stops = self._amino == ord('*')
        self._starts = np.zeros(64, dtype=np.bool_)
        for s in starts: self._starts[codon_index(s)] = True
        if np.any(self._starts & self._stops):
            raise GeneticCodeError(f"Table {table_id} has codons that are both starts and stops")
        # Initiator positions read starts as methionine
        self._init = self._amino.copy()
        self._init[self._starts] = ord('M')
        for arr in (self._init, self._starts, self._stops): arr.flags.writeable = False

    @classmethod
    def get(cls, table_id: int) -> 'GeneticCode':
        """
        Returns the genetic code for an NCBI translation table number.

        Raises:
            InvalidTableIdError: If the table number is not recognized.
        """
        try:
            return cls._REGISTRY[table_id]
        except (KeyError, TypeError):
            raise InvalidTableIdError(
                f"Unknown translation table {table_id!r}; expected one of {', '.join(map(str, cls.ids()))}"
            ) from None

    @classmethod
    def ids(cls) -> tuple[int, ...]:
        """Returns the recognized translation table numbers."""
        return tuple(sorted(cls._REGISTRY))

    @classmethod
    def _from_rules(cls, table_id: int, starts: Iterable[bytes], reassignments: dict[bytes, bytes]) -> 'GeneticCode':
        table = bytearray(STANDARD)
        for codon, residue in reassignments.items(): table[codon_index(codon)] = residue[0]
        return cls(table_id, bytes(table), starts)

    @property
    def table_id(self) -> int: return self._id

    @property
    def starts(self) -> np.ndarray:
        """Boolean array indicating valid start codons (size 64)."""
        return self._starts

    @property
    def stops(self) -> np.ndarray:
        """Boolean array indicating stop codons (size 64)."""
        return self._stops

    def __array__(self, dtype=None, copy=None):
        return self._amino.astype(dtype, copy=False) if dtype else self._amino

    def __repr__(self):
        return f"<GeneticCode: table {self._id}>"

    def is_start(self, seq: PackedSeq, n: int) -> bool:
        """Returns True if the codon at ``n`` is a recognized start codon for this table."""
        idx = seq.codon(n)
        return idx >= 0 and bool(self._starts[idx])

    def is_stop(self, seq: PackedSeq, n: int) -> bool:
        """Returns True if the codon at ``n`` is a stop codon for this table."""
        idx = seq.codon(n)
        return idx >= 0 and bool(self._stops[idx])

    def translate(self, seq: PackedSeq, n: int, is_init: bool = False) -> str:
        """
        Translates the codon at ``n``.

        Args:
            seq: The packed sequence.
            n: Position of the first base of the codon.
            is_init: If True, start codons translate to methionine.

        Returns:
            A single residue letter; ``*`` for stops and ``X`` if the codon does not fit in the sequence.
        """
        idx = seq.codon(n)
        if idx < 0: return 'X'
        return chr((self._init if is_init else self._amino)[idx])

    def start_type(self, seq: PackedSeq, n: int) -> int:
        """Returns 0, 1 or 2 for an ATG, GTG or TTG codon at ``n``, otherwise 3."""
        idx = seq.codon(n)
        return OTHER_START if idx < 0 else int(_START_TYPES[idx])

    def find_starts(self, seq: PackedSeq) -> np.ndarray:
        """Returns indices of all start codons in the sequence (0-based)."""
        return np.flatnonzero(self._starts[seq.codons()])

    def find_stops(self, seq: PackedSeq) -> np.ndarray:
        """Returns indices of all stop codons in the sequence (0-based)."""
        return np.flatnonzero(self._stops[seq.codons()])

    def translate_region(self, seq: PackedSeq, begin: int, end: int, is_init: bool = True) -> str:
        """
        Translates the codons of ``[begin, end)``.

        Args:
            seq: The packed sequence.
            begin: Position of the first base.
            end: Position after the last base.
            is_init: If True, the first codon is read as an initiator.

        Returns:
            The protein as a string. Trailing bases that do not form a whole codon are ignored.
        """
        n_codons, remainder = divmod(end - begin, 3)
        if remainder:
            warn(f'Region [{begin}, {end}) is not a whole number of codons; '
                 f'ignoring {remainder} trailing bases', TranslationWarning)
        if n_codons <= 0: return ''
        c = seq.codes(begin, begin + 3 * n_codons).astype(np.int16)
        idx = (c[0::3] << 4) | (c[1::3] << 2) | c[2::3]
        residues = self._amino[idx]
        if is_init: residues[0] = self._init[idx[0]]
        return residues.tobytes().decode(Alphabet.ENCODING)

    def prob_stop(self, gc: float) -> float:
        """
        Returns the probability that a random codon is a stop codon.

        Each base is G or C with probability ``gc / 2`` and A or T with probability ``(1 - gc) / 2``.

        Args:
            gc: GC fraction in [0, 1].

        Returns:
            The stop probability, in [0, 1].
        """
        if not 0.0 <= gc <= 1.0: raise ValueError(f"GC fraction must be in [0, 1], got {gc}")
        p = np.where(_GC_CODES, gc / 2.0, (1.0 - gc) / 2.0)
        probs = np.multiply.outer(np.multiply.outer(p, p), p).ravel()
        return float(probs[self._stops].sum())


for _id, (_starts, _reassignments) in TABLES.items():
    GeneticCode._REGISTRY[_id] = GeneticCode._from_rules(_id, _starts, _reassignments)
GeneticCode.BACTERIA = GeneticCode.get(11)
