"""GC frame plot: the locally highest-GC codon position for every base of a sequence."""
from typing import Final

import numpy as np

from orfcore.containers.seq import PackedSeq
from orfcore.lib.resources import jit


# Constants ------------------------------------------------------------------------------------------------------------
WINDOW: Final = 120
UNDEFINED_FRAME: Final = -1


# Functions ------------------------------------------------------------------------------------------------------------
def gc_frame_plot(seq: PackedSeq, window: int = WINDOW) -> np.ndarray:
    """
    Creates a GC frame plot for a sequence.

    For every position, GC bases are counted along its own codon phase within a window of ``window`` bases
    centred on it. Each complete triplet then takes the phase (0, 1 or 2) with the highest count.

    Args:
        seq: The packed sequence.
        window: Window width in bases.

    Returns:
        A read-only ``int8`` array of length ``len(seq)``. Positions after the last complete triplet are
        ``UNDEFINED_FRAME``.

    Examples:
        >>> gc_frame_plot(Alphabet.DNA.pack(b'GCCATT'), window=6)
        array([0, 0, 0, 0, 0, 0], dtype=int8)
    """
    if window < 2: raise ValueError(f"Window must be at least 2 bases, got {window}")
    plot = _gc_frame_kernel(seq.gc_mask().astype(np.int32), window // 2)
    plot.flags.writeable = False
    return plot


def reverse_frame(frame: int, slen: int) -> int:
    """
    Returns the reverse-strand frame corresponding to a forward ``frame`` on a sequence of ``slen`` bases.

    Forward position ``i`` is reverse position ``slen - 1 - i``, so the result is always in 0..2.
    """
    return (slen - 1 - frame) % 3


@jit(nopython=True, cache=True, nogil=True)
def max_frame(n1, n2, n3) -> int:
    """
    Picks the frame with the highest count.

    Ties resolve to the earlier frame: the first beats the second and third, the second beats the third.
    """
    if n1 >= n2:
        return 0 if n1 >= n3 else 2
    return 1 if n2 >= n3 else 2


# Kernels --------------------------------------------------------------------------------------------------------------
@jit(nopython=True, cache=True, nogil=True)
def _gc_frame_kernel(gc, half):
    n = len(gc)
    fwd = np.empty(n, dtype=np.int32)
    bwd = np.empty(n, dtype=np.int32)
    tot = np.empty(n, dtype=np.int32)

    # Same-phase running GC counts in both directions
    for i in range(n):
        fwd[i] = gc[i] if i < 3 else fwd[i - 3] + gc[i]
    for i in range(n - 1, -1, -1):
        bwd[i] = gc[i] if i >= n - 3 else bwd[i + 3] + gc[i]

    for i in range(n):
        t = fwd[i] + bwd[i] - gc[i]
        if i - half >= 0: t -= fwd[i - half]
        if i + half < n: t -= bwd[i + half]
        tot[i] = t

    out = np.full(n, -1, dtype=np.int8)
    for i in range(0, n - 2, 3):
        win = max_frame(tot[i], tot[i + 1], tot[i + 2])
        out[i] = win
        out[i + 1] = win
        out[i + 2] = win
    return out
