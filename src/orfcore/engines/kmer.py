"""Length-k word background frequencies over both strands of a packed sequence."""
from typing import Union, Final, ClassVar
from warnings import warn

import numpy as np

from orfcore.core.alphabet import Alphabet
from orfcore.containers.seq import PackedSeq
from orfcore.lib.resources import jit, OrfcoreWarning


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class KmerWarning(OrfcoreWarning):
    """Issued when a background cannot be estimated from the given sequence."""


# Constants ------------------------------------------------------------------------------------------------------------
# Word symbols are packed as bit0 | bit1 << 1 of each base
MER_LETTERS: Final = 'AGCT'


# Functions ------------------------------------------------------------------------------------------------------------
def _check_k(k: int, max_k: int) -> int:
    if not 1 <= k <= max_k: raise ValueError(f"Word length must be in 1..{max_k}, got {k}")
    return k


def mer_index(seq: PackedSeq, pos: int, k: int) -> int:
    """
    Converts the word of length ``k`` at ``pos`` to its background index.

    Base ``j`` of the word occupies bits ``2j`` (bit0) and ``2j + 1`` (bit1) of the index.
    """
    if pos < 0 or pos + k > len(seq): raise IndexError(f"Word [{pos}, {pos + k}) out of range for {len(seq)} bp")
    index = 0
    for j, code in enumerate(seq.codes(pos, pos + k)):
        index |= _mer_symbol(int(code)) << (2 * j)
    return index


def mer_text(index: int, k: int) -> str:
    """
    Returns the word text for a background index.

    Examples:
        >>> mer_text(mer_index(Alphabet.DNA.pack(b'AGGAGG'), 0, 6), 6)
        'AGGAGG'
    """
    if k == 0: return 'None'
    return ''.join(MER_LETTERS[(index >> (2 * i)) & 3] for i in range(k))


def _text_index(text: Union[str, bytes]) -> int:
    if isinstance(text, str): text = text.encode(Alphabet.ENCODING, errors='replace')
    if Alphabet.DNA.mask(text).any(): raise KeyError(f"Word {text!r} contains ambiguous bases")
    index = 0
    for j, code in enumerate(Alphabet.DNA.encode(text)):
        index |= _mer_symbol(int(code)) << (2 * j)
    return index


# Classes --------------------------------------------------------------------------------------------------------------
class KmerBackground:
    """
    Normalized frequencies of all words of length ``k`` over a sequence and its reverse complement.

    Both strands are counted independently (no strand folding) and the frequencies sum to 1 over the
    ``4 ** k`` bins.

    Examples:
        >>> bg = KmerBackground.from_seq(Alphabet.DNA.pack(b'AAGT'), k=1)
        >>> bg['A'], bg.total
        (0.375, 8)
    """
    __slots__ = ('_k', '_counts', '_data', '_total')
    MAX_K: ClassVar[int] = 12
    _DTYPE = np.float64

    def __init__(self, k: int, counts: np.ndarray):
        _check_k(k, self.MAX_K)
        if len(counts) != 4 ** k: raise ValueError(f"Expected {4 ** k} counts for k={k}, got {len(counts)}")
        self._k = k
        self._counts = np.array(counts, dtype=np.int64)
        self._total = int(self._counts.sum())
        if self._total:
            self._data = self._counts / self._DTYPE(self._total)
        else:
            self._data = np.zeros(len(counts), dtype=self._DTYPE)
        self._counts.flags.writeable = False
        self._data.flags.writeable = False

    @classmethod
    def from_seq(cls, seq: PackedSeq, k: int) -> 'KmerBackground':
        """
        Counts every word of length ``k`` on both strands of ``seq``.

        Args:
            seq: The forward strand; its (cached) reverse complement is counted too.
            k: Word length.

        Returns:
            A new ``KmerBackground``. A sequence shorter than ``k`` gives an all-zero background.
        """
        _check_k(k, cls.MAX_K)
        counts = np.zeros(4 ** k, dtype=np.int64)
        if len(seq) < k:
            warn(f'Sequence of {len(seq)} bp is shorter than the word length {k}; background is empty', KmerWarning)
            return cls(k, counts)
        _mer_count_kernel(seq.codes(), k, counts)
        _mer_count_kernel(seq.reverse_complement().codes(), k, counts)
        return cls(k, counts)

    @property
    def k(self) -> int: return self._k

    @property
    def counts(self) -> np.ndarray:
        """Raw word counts over both strands."""
        return self._counts

    @property
    def data(self) -> np.ndarray:
        """Normalized frequencies."""
        return self._data

    @property
    def total(self) -> int:
        """Combined number of words counted on both strands."""
        return self._total

    def __len__(self): return len(self._data)

    def __getitem__(self, item: Union[int, str, bytes]) -> float:
        if isinstance(item, (str, bytes)):
            if len(item) != self._k: raise KeyError(f"Word {item!r} is not of length {self._k}")
            item = _text_index(item)
        return float(self._data[item])

    def __array__(self, dtype=None, copy=None) -> np.ndarray:
        return self._data if dtype is None else self._data.astype(dtype)

    def __repr__(self): return f"<KmerBackground: k={self._k}, {self._total} words>"


# Kernels --------------------------------------------------------------------------------------------------------------
@jit(nopython=True, cache=True, nogil=True)
def _mer_symbol(code):
    """Two-bit code (bit0 << 1 | bit1) to word symbol (bit0 | bit1 << 1)."""
    return ((code & 1) << 1) | (code >> 1)


@jit(nopython=True, cache=True, nogil=True)
def _mer_count_kernel(codes, k, counts):
    shift = 2 * (k - 1)
    index = 0
    for i in range(len(codes)):
        index = (index >> 2) | (_mer_symbol(np.int64(codes[i])) << shift)
        if i >= k - 1:
            counts[index] += 1
