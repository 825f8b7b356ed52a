"""Bit-packed nucleotide containers with an ambiguity bitmap and positional predicates."""
from typing import Union, Final

import numpy as np


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class CapacityExceededError(ValueError):
    """Raised when a sequence would be longer than the configured maximum."""


# Functions ------------------------------------------------------------------------------------------------------------
def check_capacity(length: int, max_len: int = None) -> int:
    """
    Validates a requested sequence length against the configured maximum.

    Args:
        length: Requested number of bases.
        max_len: Maximum accepted length (defaults to ``PackedSeq.MAX_LEN``).

    Returns:
        The length, unchanged.

    Raises:
        ValueError: If the length is negative.
        CapacityExceededError: If the length exceeds ``max_len``.
    """
    if max_len is None: max_len = PackedSeq.MAX_LEN
    if length < 0: raise ValueError(f"Sequence length cannot be negative ({length})")
    if length > max_len: raise CapacityExceededError(f"Sequence of {length} bp exceeds the maximum of {max_len} bp")
    return length


def _test(bits: np.ndarray, i: int) -> int:
    """Reads bit ``i`` of a little-bit-order packed array."""
    return (int(bits[i >> 3]) >> (i & 7)) & 1


def _unpack(bits: np.ndarray, start: int, stop: int) -> np.ndarray:
    """Unpacks bits ``[start, stop)`` of a little-bit-order packed array, touching only the covering bytes."""
    first = start >> 3
    unpacked = np.unpackbits(bits[first:(stop + 7) >> 3], bitorder='little')
    offset = first << 3
    return unpacked[start - offset:stop - offset]


# Classes --------------------------------------------------------------------------------------------------------------
class PackedSeq:
    """
    Immutable two-bit nucleotide sequence with a parallel ambiguity bitmap.

    Each position is stored as a pair of bits in two parallel packed arrays (``bit0``, ``bit1``), so that
    A=(0,0), C=(0,1), G=(1,0), T=(1,1). A third packed array flags positions whose input symbol was not a
    definite A/C/G/T call; those positions carry the alphabet's default code (T) for all downstream counting.

    ``PackedSeq`` objects should be created via ``Alphabet.pack()`` or ``Alphabet.builder()``.

    Examples:
        >>> seq = Alphabet.DNA.pack(b'ATGAAATAG')
        >>> len(seq)
        9
        >>> seq.is_g(2), seq.is_gc(2)
        (True, True)
    """
    __slots__ = ('_bit0', '_bit1', '_ambig', '_length', '_alphabet', '_rc', '_hash')
    MAX_LEN: Final = 32_000_000
    GAP_WIDTH: Final = 8
    A: Final = 0
    C: Final = 1
    G: Final = 2
    T: Final = 3

    def __init__(self, bit0: np.ndarray, bit1: np.ndarray, ambiguous: np.ndarray, length: int,
                 alphabet: 'Alphabet', _validation_token: object = None):
        if _validation_token is not alphabet:
            raise PermissionError("PackedSeq objects must be created via an Alphabet")
        n_bytes = (length + 7) >> 3
        if not len(bit0) == len(bit1) == len(ambiguous) == n_bytes:
            raise ValueError(f"Packed arrays must hold exactly {n_bytes} bytes for {length} bp")
        self._bit0 = bit0
        self._bit1 = bit1
        self._ambig = ambiguous
        self._length = length
        self._alphabet = alphabet
        self._rc = None
        self._hash = None
        # Freeze
        self._bit0.flags.writeable = False
        self._bit1.flags.writeable = False
        self._ambig.flags.writeable = False

    @property
    def alphabet(self) -> 'Alphabet':
        """Returns the alphabet that owns this sequence."""
        return self._alphabet

    @property
    def bits(self) -> tuple[np.ndarray, np.ndarray]:
        """Returns the packed ``(bit0, bit1)`` arrays (zero-copy, read-only)."""
        return self._bit0, self._bit1

    @property
    def ambiguity_bits(self) -> np.ndarray:
        """Returns the packed ambiguity bitmap (zero-copy, read-only)."""
        return self._ambig

    @property
    def nbytes(self) -> int:
        return self._bit0.nbytes + self._bit1.nbytes + self._ambig.nbytes

    def __len__(self): return self._length

    def _check(self, i: int) -> int:
        if not 0 <= i < self._length: raise IndexError(f"Position {i} out of range for {self._length} bp")
        return i

    # Positional predicates --------------------------------------------------------------------------------------------
    def code(self, i: int) -> int:
        """Returns the two-bit code (A=0, C=1, G=2, T=3) at position ``i``."""
        self._check(i)
        return (_test(self._bit0, i) << 1) | _test(self._bit1, i)

    def is_a(self, i: int) -> bool: return self.code(i) == self.A
    def is_c(self, i: int) -> bool: return self.code(i) == self.C
    def is_g(self, i: int) -> bool: return self.code(i) == self.G
    def is_t(self, i: int) -> bool: return self.code(i) == self.T

    def is_gc(self, i: int) -> bool:
        """G and C are the two codes whose bits differ."""
        self._check(i)
        return _test(self._bit0, i) != _test(self._bit1, i)

    def is_n(self, i: int) -> bool:
        """Returns True if position ``i`` was not a definite A/C/G/T call."""
        self._check(i)
        return _test(self._ambig, i) == 1

    def _n_at(self, i: int) -> bool:
        # Positions outside the sequence are never ambiguous
        return 0 <= i < self._length and _test(self._ambig, i) == 1

    def is_nnn(self, i: int) -> bool:
        """Returns True if all three bases of the codon at ``i`` are ambiguous."""
        return self._n_at(i) and self._n_at(i + 1) and self._n_at(i + 2)

    def codon_has_n(self, i: int) -> bool:
        """Returns True if any base of the codon at ``i`` is ambiguous."""
        return self._n_at(i) or self._n_at(i + 1) or self._n_at(i + 2)

    def gap_to_left(self, i: int) -> bool:
        """Returns True if a run of gap-marker codons sits immediately upstream of ``i``."""
        if self.is_nnn(i - 3) and self.is_nnn(i - 6): return True
        return self._n_at(i - 3) and self.is_nnn(i - 6) and self.is_nnn(i - 9)

    def gap_to_right(self, i: int) -> bool:
        """Returns True if a run of gap-marker codons sits immediately downstream of the codon at ``i``."""
        if self.is_nnn(i + 3) and self.is_nnn(i + 6): return True
        return self._n_at(i + 5) and self.is_nnn(i + 6) and self.is_nnn(i + 9)

    def codon(self, i: int) -> int:
        """
        Returns the 6-bit codon index (``code0 << 4 | code1 << 2 | code2``) of the codon starting at ``i``,
        or -1 if the codon does not fit inside the sequence.
        """
        if i < 0 or i + 3 > self._length: return -1
        c = self.codes(i, i + 3)
        return (int(c[0]) << 4) | (int(c[1]) << 2) | int(c[2])

    # Vectorized access ------------------------------------------------------------------------------------------------
    def _range(self, start: int, stop: Union[int, None]) -> tuple[int, int]:
        if stop is None: stop = self._length
        if not 0 <= start <= stop <= self._length:
            raise IndexError(f"Range [{start}, {stop}) out of bounds for {self._length} bp")
        return start, stop

    def codes(self, start: int = 0, stop: int = None) -> np.ndarray:
        """
        Returns the two-bit codes of ``[start, stop)`` as a ``uint8`` array.

        Examples:
            >>> Alphabet.DNA.pack(b'ACGT').codes()
            array([0, 1, 2, 3], dtype=uint8)
        """
        start, stop = self._range(start, stop)
        return (_unpack(self._bit0, start, stop) << 1) | _unpack(self._bit1, start, stop)

    def codons(self) -> np.ndarray:
        """Returns the codon index of every position that starts a complete codon (length ``N - 2``)."""
        if self._length < 3: return np.empty(0, dtype=np.int16)
        c = self.codes().astype(np.int16)
        return (c[:-2] << 4) | (c[1:-1] << 2) | c[2:]

    def ambiguity(self, start: int = 0, stop: int = None) -> np.ndarray:
        """Returns the ambiguity flags of ``[start, stop)`` as a boolean array."""
        start, stop = self._range(start, stop)
        return _unpack(self._ambig, start, stop).astype(np.bool_)

    def gc_mask(self, start: int = 0, stop: int = None) -> np.ndarray:
        """Returns a boolean array that is True where the stored base is G or C."""
        start, stop = self._range(start, stop)
        return (_unpack(self._bit0, start, stop) != _unpack(self._bit1, start, stop))

    @property
    def gc(self) -> float:
        """Returns the GC fraction of the whole sequence (ambiguous positions count as their default code)."""
        if self._length == 0: return 0.0
        return np.count_nonzero(self.gc_mask()) / self._length

    def gc_content(self, a: int, b: int) -> float:
        """Returns the GC fraction of the inclusive range ``[a, b]``."""
        if b < a: raise ValueError(f"Empty range [{a}, {b}]")
        return np.count_nonzero(self.gc_mask(a, b + 1)) / (b - a + 1)

    def reverse_complement(self) -> 'PackedSeq':
        """
        Returns the reverse complement of this sequence.

        Base ``i`` is complemented and written to ``N - 1 - i``; ambiguity flags are mirrored unchanged.
        The result is computed once and cached; the reverse complement of the result is this sequence.
        """
        if self._rc is None:
            rc = self._alphabet.packed_from(self._alphabet.complement[self.codes()[::-1]], self.ambiguity()[::-1])
            rc._rc = self
            self._rc = rc
        return self._rc

    # Dunder methods ---------------------------------------------------------------------------------------------------
    def tobytes(self, start: int = 0, stop: int = None) -> bytes:
        """Decodes ``[start, stop)`` to bytes, rendering ambiguous positions as ``N``."""
        decoded = np.frombuffer(self._alphabet.decode(self.codes(start, stop)), dtype=np.uint8).copy()
        decoded[self.ambiguity(start, stop)] = ord(self._alphabet.UNKNOWN)
        return decoded.tobytes()

    def __bytes__(self) -> bytes: return self.tobytes()
    def __str__(self): return self.tobytes().decode('ascii')

    def __repr__(self):
        if self._length <= 14: return str(self)
        # Decode only the parts we show
        head = self.tobytes(0, 7).decode('ascii')
        tail = self.tobytes(self._length - 7).decode('ascii')
        return f"{head}...{tail}"

    def __eq__(self, other):
        if self is other: return True
        if not isinstance(other, PackedSeq): return False
        if self._length != other._length: return False
        return (np.array_equal(self._bit0, other._bit0) and np.array_equal(self._bit1, other._bit1) and
                np.array_equal(self._ambig, other._ambig))

    def __hash__(self):
        if self._hash is None:
            self._hash = hash((self._length, self._bit0.tobytes(), self._bit1.tobytes(), self._ambig.tobytes()))
        return self._hash


class PackedSeqBuilder:
    """
    Exclusive, writable staging area for a ``PackedSeq``.

    Positions are written with ``set()``; ``freeze()`` hands the buffers to an immutable ``PackedSeq`` and
    disables further writes. Builders should be created via ``Alphabet.builder()``.

    Examples:
        >>> builder = Alphabet.DNA.builder(4)
        >>> for i, base in enumerate('ACGN'): builder.set_symbol(i, base)
        >>> str(builder.freeze())
        'ACGN'
    """
    __slots__ = ('_bit0', '_bit1', '_ambig', '_length', '_alphabet', '_frozen')

    def __init__(self, length: int, alphabet: 'Alphabet', max_len: int = None, _validation_token: object = None):
        if _validation_token is not alphabet:
            raise PermissionError("PackedSeqBuilder objects must be created via an Alphabet")
        check_capacity(length, max_len)
        n_bytes = (length + 7) >> 3
        self._bit0 = np.zeros(n_bytes, dtype=np.uint8)
        self._bit1 = np.zeros(n_bytes, dtype=np.uint8)
        self._ambig = np.zeros(n_bytes, dtype=np.uint8)
        self._length = length
        self._alphabet = alphabet
        self._frozen = False

    def __len__(self): return self._length

    @staticmethod
    def _assign(bits: np.ndarray, i: int, value: int):
        if value: bits[i >> 3] |= (1 << (i & 7))
        else: bits[i >> 3] &= ~(1 << (i & 7)) & 0xFF

    def set(self, i: int, code: int, ambiguous: bool = False):
        """
        Writes the two-bit ``code`` (and ambiguity flag) at position ``i``.

        Raises:
            PermissionError: If the builder has been frozen.
            IndexError: If ``i`` is out of range.
            ValueError: If ``code`` is not in 0..3.
        """
        if self._frozen: raise PermissionError("Builder has already been frozen")
        if not 0 <= i < self._length: raise IndexError(f"Position {i} out of range for {self._length} bp")
        if not 0 <= code <= 3: raise ValueError(f"Invalid two-bit code {code}")
        self._assign(self._bit0, i, code >> 1)
        self._assign(self._bit1, i, code & 1)
        self._assign(self._ambig, i, ambiguous)

    def set_symbol(self, i: int, symbol: Union[bytes, str]):
        """Encodes ``symbol`` with the owning alphabet and writes it at position ``i``."""
        bit0, bit1, ambiguous = self._alphabet.encode_base(symbol)
        self.set(i, (bit0 << 1) | bit1, ambiguous)

    def freeze(self) -> PackedSeq:
        """Returns the immutable ``PackedSeq``; the builder can no longer be written to."""
        if self._frozen: raise PermissionError("Builder has already been frozen")
        self._frozen = True
        return self._alphabet.new_packed(self._bit0, self._bit1, self._ambig, self._length)
