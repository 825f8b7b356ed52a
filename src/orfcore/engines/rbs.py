"""
Shine-Dalgarno (ribosome binding site) motif classification upstream of a start codon.

The six bases at ``pos`` are compared to AGGAGG, every qualifying sub-window is assigned a motif class from
its score and its distance to the start, and the class with the highest caller-supplied weight is returned.
"""
from enum import IntEnum
from typing import Final, Union

import numpy as np

from orfcore.containers.seq import PackedSeq
from orfcore.lib.resources import RESOURCES, jit
if RESOURCES.has_module('numba'): from numba import prange
else: prange = range


# Classes --------------------------------------------------------------------------------------------------------------
class MotifVariant(IntEnum):
    """Motif search modes."""
    EXACT = 0
    MISMATCH = 1


# Constants ------------------------------------------------------------------------------------------------------------
N_EXACT_CLASSES: Final = 28
N_MISMATCH_CLASSES: Final = 20
MOTIF_LEN: Final = 6
MAX_DISTANCE: Final = 15
MIN_SCORE: Final = 6

# (score, distance flag): class
_EXACT_CLASSES: Final = {
    (6, 2): 1, (6, 3): 2, (8, 3): 3, (9, 3): 3, (6, 1): 6, (11, 3): 10, (12, 3): 10, (14, 3): 10,
    (8, 2): 11, (9, 2): 11, (8, 1): 12, (9, 1): 12, (6, 0): 13, (8, 0): 15, (9, 0): 16,
    (11, 2): 20, (11, 1): 21, (11, 0): 22, (12, 2): 20, (12, 1): 23, (12, 0): 24,
    (14, 2): 25, (14, 1): 26, (14, 0): 27,
}
_MISMATCH_CLASSES: Final = {
    (6, 3): 2, (7, 3): 2, (9, 3): 3, (6, 2): 4, (6, 1): 5, (6, 0): 9, (7, 2): 7, (7, 1): 8, (7, 0): 14,
    (9, 2): 17, (9, 1): 18, (9, 0): 19,
}


def _class_table(classes: dict[tuple[int, int], int]) -> np.ndarray:
    # Unlisted combinations fall back to class 0
    table = np.zeros((14 + 1, 4), dtype=np.int64)
    for (score, flag), cls in classes.items(): table[score, flag] = cls
    table.flags.writeable = False
    return table


_CLASS_TABLES: Final = (_class_table(_EXACT_CLASSES), _class_table(_MISMATCH_CLASSES))
_N_CLASSES: Final = (N_EXACT_CLASSES, N_MISMATCH_CLASSES)


# Functions ------------------------------------------------------------------------------------------------------------
def _check_weights(weights, variant: MotifVariant) -> np.ndarray:
    weights = np.asarray(weights, dtype=np.float64)
    if weights.ndim != 1 or len(weights) < _N_CLASSES[variant]:
        raise ValueError(f"{variant.name.lower()} motifs need {_N_CLASSES[variant]} class weights, "
                         f"got {weights.shape}")
    return weights


def shine_dalgarno(seq: PackedSeq, pos: int, start: int, weights: Union[np.ndarray, list[float]],
                   variant: MotifVariant = MotifVariant.EXACT) -> int:
    """
    Finds the best Shine-Dalgarno motif class in the six bases at ``pos`` upstream of ``start``.

    Args:
        seq: The packed sequence.
        pos: Position of the first base of the searched region (may be negative near the contig start).
        start: Position of the first base of the start codon.
        weights: Per-class weights (28 for exact motifs, 20 for single-mismatch motifs).
        variant: ``MotifVariant.EXACT`` or ``MotifVariant.MISMATCH``.

    Returns:
        The winning motif class; 0 if no sub-window qualifies.

    Raises:
        ValueError: If the weight table has fewer entries than the variant has classes.

    Examples:
        >>> weights = np.zeros(28); weights[10] = 1.0
        >>> seq = Alphabet.DNA.pack(b'AGGAGG' + b'T' * 13 + b'ATG')
        >>> shine_dalgarno(seq, 0, 19, weights)
        10
    """
    variant = MotifVariant(variant)
    weights = _check_weights(weights, variant)
    # Only the bases the region can touch are unpacked
    lo = min(max(pos, 0), len(seq))
    hi = min(max(pos + MOTIF_LEN, lo), len(seq))
    return int(_shine_dalgarno_kernel(seq.codes(lo, hi), lo, pos, start, weights, _CLASS_TABLES[variant],
                                      variant == MotifVariant.MISMATCH))


def shine_dalgarno_exact(seq: PackedSeq, pos: int, start: int, weights) -> int:
    """Finds the best exact-match Shine-Dalgarno class (0-27)."""
    return shine_dalgarno(seq, pos, start, weights, MotifVariant.EXACT)


def shine_dalgarno_mm(seq: PackedSeq, pos: int, start: int, weights) -> int:
    """Finds the best single-mismatch Shine-Dalgarno class (0-19)."""
    return shine_dalgarno(seq, pos, start, weights, MotifVariant.MISMATCH)


def shine_dalgarno_batch(seq: PackedSeq, positions, starts, weights,
                         variant: MotifVariant = MotifVariant.EXACT) -> np.ndarray:
    """
    Scores many candidate regions of one sequence in a single parallel call.

    Args:
        seq: The packed sequence.
        positions: Region start for each candidate.
        starts: Start codon position for each candidate.
        weights: Per-class weights.
        variant: Motif search mode.

    Returns:
        An ``int64`` array of motif classes, one per candidate.
    """
    variant = MotifVariant(variant)
    weights = _check_weights(weights, variant)
    positions = np.asarray(positions, dtype=np.int64)
    starts = np.asarray(starts, dtype=np.int64)
    if positions.shape != starts.shape:
        raise ValueError(f"Got {len(positions)} positions but {len(starts)} starts")
    return _shine_dalgarno_batch_kernel(seq.codes(), positions, starts, weights, _CLASS_TABLES[variant],
                                        variant == MotifVariant.MISMATCH)


# Kernels --------------------------------------------------------------------------------------------------------------
@jit(nopython=True, cache=True, nogil=True)
def _distance_flag(rdis, length, mismatch):
    if mismatch:
        if rdis < 5: return 1
        if 11 <= rdis <= 12: return 2
    else:
        if rdis < 5: return 2 if length < 5 else 1
        if 11 <= rdis <= 12: return 1 if length < 5 else 2
    if rdis >= 13: return 3
    return 0


@jit(nopython=True, cache=True, nogil=True)
def _shine_dalgarno_kernel(codes, offset, pos, start, weights, classes, mismatch):
    """
    Scores the region at ``pos`` where ``codes[0]`` holds sequence position ``offset``.
    Two-bit codes: A=0, G=2.
    """
    limit = min(MOTIF_LEN, start - 4 - pos)
    match = np.full(MOTIF_LEN, -10, dtype=np.int64)
    for i in range(max(limit, 0)):
        j = pos + i - offset
        if pos + i < 0 or j >= len(codes): continue
        if i % 3 == 0:
            if codes[j] == 0: match[i] = 2
            elif mismatch: match[i] = -3
        else:
            if codes[j] == 2: match[i] = 3
            elif mismatch: match[i] = -2

    best = 0
    min_len = 5 if mismatch else 3
    for length in range(limit, min_len - 1, -1):
        for j in range(limit - length + 1):
            score = -2
            n_neg = 0
            for k in range(j, j + length):
                score += match[k]
                if match[k] < 0:
                    n_neg += 1
                    # Mismatches at the motif edges
                    if mismatch and (k <= j + 1 or k >= j + length - 2): score -= 10
            if mismatch:
                if n_neg != 1: continue
            elif n_neg > 0: continue
            rdis = start - (pos + j + length)
            if rdis > MAX_DISTANCE or score < MIN_SCORE: continue
            cls = classes[score, _distance_flag(rdis, length, mismatch)]
            if weights[cls] > weights[best] or (weights[cls] == weights[best] and cls < best): best = cls
    return best


@jit(nopython=True, cache=True, nogil=True, parallel=True)
def _shine_dalgarno_batch_kernel(codes, positions, starts, weights, classes, mismatch):
    n = len(positions)
    out = np.zeros(n, dtype=np.int64)
    for i in prange(n):
        out[i] = _shine_dalgarno_kernel(codes, 0, positions[i], starts[i], weights, classes, mismatch)
    return out
