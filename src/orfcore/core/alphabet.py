"""
Module for representing ASCII biological alphabets
"""
from typing import Union, Final, ClassVar

import numpy as np

from orfcore.containers.seq import PackedSeq, PackedSeqBuilder, check_capacity
from orfcore.lib.resources import RESOURCES


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class AlphabetError(Exception):
    """Raised when an alphabet is invalid or an operation is incompatible with the alphabet."""


# Classes --------------------------------------------------------------------------------------------------------------
class Alphabet:
    """
    A class to represent an alphabet of ASCII symbols.

    Symbols are encoded to their index in the alphabet. Symbols outside the alphabet (after aliasing) either
    resolve to a ``default`` symbol, or to ``INVALID`` when the alphabet has no default.
    """
    __slots__ = ('_data', '_lookup_table', '_complement', '_default', '_trans_table', '_mask_table', '_decode_table')
    DTYPE: Final = np.uint8
    INVALID: Final = np.iinfo(DTYPE).max
    MAX_LEN: Final = INVALID + 1
    ENCODING: Final = 'ascii'
    UNKNOWN: Final = b'N'

    DNA: ClassVar['Alphabet']
    AMINO: ClassVar['Alphabet']

    def __init__(self, symbols: bytes, complement: bytes = None, aliases: dict[bytes, bytes] = None,
                 default: bytes = None):
        """
        Initializes an Alphabet.

        Args:
            symbols: The symbols in the alphabet as bytes.
            complement: Optional complement symbols as bytes. Must be same length as symbols.
            aliases: Optional mapping of non-canonical characters to valid ones (e.g. {b'U': b'T'}).
                Aliased characters are not considered ambiguous.
            default: Optional symbol that every unrecognised character resolves to.

        Raises:
            AlphabetError: If symbols are not ASCII, too long, contain duplicates, or if complement is invalid.
        """
        if not symbols.isascii(): raise AlphabetError('Alphabet symbols must be a valid ASCII string')
        if len(symbols) > self.MAX_LEN:
            raise AlphabetError(f'Alphabet size cannot exceed {self.MAX_LEN} symbols ({self.DTYPE})')
        if len(set(symbols.upper())) != len(symbols): raise AlphabetError('Alphabet contains duplicate symbols')

        self._data: np.ndarray = np.frombuffer(symbols, dtype=self.DTYPE)

        # Build Lookup Table
        self._lookup_table = np.full(self.MAX_LEN, self.INVALID, dtype=self.DTYPE)
        indices = np.arange(len(symbols), dtype=self.DTYPE)
        self._lookup_table[np.frombuffer(symbols, dtype=self.DTYPE)] = indices
        self._lookup_table[np.frombuffer(symbols.lower(), dtype=self.DTYPE)] = indices

        # Apply Aliases (Map non-canonical chars to valid indices)
        if aliases:
            for src, dst in aliases.items():
                if len(src) != 1 or len(dst) != 1: raise AlphabetError("Aliases must be single bytes")
                dst_idx = self._lookup_table[ord(dst)]
                if dst_idx == self.INVALID: raise AlphabetError(f"Alias target {dst} not in alphabet")
                self._lookup_table[ord(src)] = dst_idx
                self._lookup_table[ord(src.lower())] = dst_idx

        # Ambiguity mask: anything the lookup table cannot resolve
        self._mask_table = (self._lookup_table == self.INVALID).astype(self.DTYPE).tobytes()

        self._default = None
        if default is not None:
            if len(default) != 1: raise AlphabetError("Default must be a single byte")
            self._default = self._lookup_table[ord(default)]
            if self._default == self.INVALID: raise AlphabetError(f"Default {default} not in alphabet")

        # Build Translation Table (unknown symbols resolve to the default when there is one)
        trans = self._lookup_table.copy()
        if self._default is not None: trans[trans == self.INVALID] = self._default
        self._trans_table = trans.tobytes()

        # Build Decode Table (for fast tobytes)
        decode_map = np.full(256, ord(self.UNKNOWN), dtype=self.DTYPE)
        decode_map[:len(self._data)] = self._data
        self._decode_table = decode_map.tobytes()

        self._complement = None
        if complement is not None:
            if len(complement) != len(symbols):
                raise AlphabetError("Complement must be the same length as symbols")
            comp_indices = self._lookup_table[np.frombuffer(complement, dtype=self.DTYPE)]
            if np.any(comp_indices == self.INVALID):
                raise AlphabetError("Complement contains symbols not in alphabet")
            comp_indices.flags.writeable = False
            self._complement = comp_indices

    def __len__(self):
        return len(self._data)

    def __contains__(self, item):
        try:
            if isinstance(item, (int, np.integer)):
                return self._lookup_table[item] != self.INVALID
            if isinstance(item, (str, bytes)):
                if len(item) != 1: return False
                val = ord(item) if isinstance(item, str) else item[0]
                return self._lookup_table[val] != self.INVALID
        except (IndexError, ValueError, TypeError):
            pass
        return False

    def __iter__(self):
        return iter(self._data)

    def __getitem__(self, item):
        return self._data[item]

    def __repr__(self):
        return f"<Alphabet: {self._data.tobytes().decode(self.ENCODING)}>"

    def __eq__(self, other):
        if self is other: return True
        if not isinstance(other, Alphabet): return False
        return np.array_equal(self._data, other._data)

    def __hash__(self):
        return hash(self._data.tobytes())

    @property
    def bits_per_symbol(self) -> int:
        """Returns the number of bits required to represent a symbol in this alphabet."""
        return (len(self._data) - 1).bit_length()

    @property
    def complement(self):
        """Returns the complement lookup table if available."""
        return self._complement

    @property
    def default(self) -> Union[int, None]:
        """Returns the code unrecognised symbols resolve to, if any."""
        return None if self._default is None else int(self._default)

    def encode(self, text: Union[bytes, str]) -> np.ndarray:
        """
        Encodes a byte string to an array of symbol indices, one per input byte.

        Args:
            text: The text to encode.

        Returns:
            A numpy array of encoded indices. Unrecognised symbols take the default code, or ``INVALID``.
            Non-ASCII characters in ``str`` input are one unrecognised symbol each.
        """
        if isinstance(text, str): text = text.encode(self.ENCODING, errors='replace')
        return np.frombuffer(text.translate(self._trans_table), dtype=self.DTYPE)

    def mask(self, text: Union[bytes, str]) -> np.ndarray:
        """Returns a boolean array flagging the symbols this alphabet does not recognise."""
        if isinstance(text, str): text = text.encode(self.ENCODING, errors='replace')
        return np.frombuffer(text.translate(self._mask_table), dtype=np.bool_)

    def decode(self, encoded: np.ndarray) -> bytes:
        """Decodes an array of indices back to bytes.

        Args:
            encoded: The numpy array of indices (uint8).

        Returns:
            The decoded bytes string.
        """
        if encoded.dtype != self.DTYPE:
            encoded = encoded.astype(self.DTYPE, copy=False)
        return encoded.tobytes().translate(self._decode_table)

    def encode_base(self, base: Union[bytes, str]) -> tuple[int, int, bool]:
        """
        Encodes a single nucleotide to its two-bit representation.

        Args:
            base: A single symbol.

        Returns:
            A tuple of ``(bit0, bit1, ambiguous)``.

        Examples:
            >>> Alphabet.DNA.encode_base('G')
            (1, 0, False)
            >>> Alphabet.DNA.encode_base('N')
            (1, 1, True)
        """
        self._require_two_bit()
        if len(base) != 1: raise AlphabetError(f"Expected a single symbol, got {base!r}")
        code = int(self.encode(base)[0])
        return code >> 1, code & 1, bool(self.mask(base)[0])

    def index(self, symbol: Union[bytes, str]) -> int:
        """Returns the index of a symbol, or -1 if it is not in the alphabet."""
        if len(symbol) != 1: return -1
        val = self._lookup_table[ord(symbol) if isinstance(symbol, str) else symbol[0]]
        return -1 if val == self.INVALID else int(val)

    def letter(self, num: int) -> str:
        """Returns the symbol at an index, or ``X`` if the index is out of range."""
        if not 0 <= num < len(self._data): return 'X'
        return chr(self._data[num])

    # Packed sequences -------------------------------------------------------------------------------------------------
    def _require_two_bit(self):
        if self.bits_per_symbol != 2 or self._complement is None or self._default is None:
            raise AlphabetError(f"{self} is not a complemented two-bit alphabet")

    def new_packed(self, bit0: np.ndarray, bit1: np.ndarray, ambiguous: np.ndarray, length: int) -> 'PackedSeq':
        """
        Factory method. The ONLY valid way to create a PackedSeq.
        """
        return PackedSeq(bit0, bit1, ambiguous, length, self, _validation_token=self)

    def packed_from(self, codes: np.ndarray, ambiguous: np.ndarray = None) -> 'PackedSeq':
        """
        Packs an array of two-bit codes (and optional ambiguity flags) into a PackedSeq.

        Args:
            codes: ``uint8`` codes in 0..3.
            ambiguous: Optional boolean array of the same length.

        Returns:
            A new ``PackedSeq``.
        """
        self._require_two_bit()
        codes = np.asarray(codes, dtype=self.DTYPE)
        if ambiguous is None: ambiguous = np.zeros(len(codes), dtype=np.bool_)
        if len(ambiguous) != len(codes): raise ValueError("Ambiguity flags must match the number of codes")
        return self.new_packed(
            np.packbits(codes >> 1, bitorder='little'),
            np.packbits(codes & 1, bitorder='little'),
            np.packbits(ambiguous, bitorder='little'),
            len(codes)
        )

    def pack(self, text: Union[bytes, str], max_len: int = None) -> 'PackedSeq':
        """
        Encodes text into a bit-packed sequence.

        Every byte is one position. Symbols outside the alphabet are flagged ambiguous and take the default code.

        Args:
            text: The nucleotide text.
            max_len: Maximum accepted length (defaults to ``PackedSeq.MAX_LEN``).

        Returns:
            A new ``PackedSeq``.

        Raises:
            CapacityExceededError: If the text is longer than ``max_len``.

        Examples:
            >>> seq = Alphabet.DNA.pack(b'ATGNNA')
            >>> str(seq)
            'ATGNNA'
        """
        self._require_two_bit()
        if isinstance(text, str): text = text.encode(self.ENCODING, errors='replace')
        check_capacity(len(text), max_len)
        return self.packed_from(self.encode(text), self.mask(text))

    def builder(self, length: int, max_len: int = None) -> 'PackedSeqBuilder':
        """
        Returns an exclusive, writable builder for a PackedSeq of the given length.
        All positions start as the zero code (``A``) and unflagged.
        """
        self._require_two_bit()
        return PackedSeqBuilder(length, self, max_len=max_len, _validation_token=self)

    def random_seq(self, rng: np.random.Generator = None, length: int = None, min_len: int = 5,
                   max_len: int = 5000, weights=None, ambiguous: float = 0.0) -> 'PackedSeq':
        """
        Generates a random packed sequence from this alphabet.

        Args:
            rng: Random number generator (optional).
            length: Exact length of sequence to generate.
            min_len: Minimum length if length is not specified.
            max_len: Maximum length if length is not specified.
            weights: Weights for each symbol (optional).
            ambiguous: Fraction of positions to flag as ambiguous (these take the default code).

        Returns:
            A random PackedSeq.
        """
        if rng is None: rng = RESOURCES.rng
        length = length or int(rng.integers(min_len, max_len))
        n_sym = len(self._data)
        if weights is None:
            codes = rng.integers(0, n_sym, size=length, dtype=self.DTYPE)
        else:
            codes = rng.choice(n_sym, size=length, p=weights).astype(self.DTYPE)
        flags = rng.random(length) < ambiguous if ambiguous > 0 else np.zeros(length, dtype=np.bool_)
        codes[flags] = self._default
        return self.packed_from(codes, flags)


# Initialize Standard Alphabets
Alphabet.DNA = Alphabet(b'ACGT', b'TGCA', aliases={b'U': b'T'}, default=b'T')
Alphabet.AMINO = Alphabet(b'ACDEFGHIKLMNPQRSTVWY')
