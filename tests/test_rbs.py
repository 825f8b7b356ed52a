import numpy as np
import pytest
from orfcore.core.alphabet import Alphabet
from orfcore.engines.rbs import (MotifVariant, shine_dalgarno, shine_dalgarno_exact, shine_dalgarno_mm,
                                 shine_dalgarno_batch, N_EXACT_CLASSES, N_MISMATCH_CLASSES)


def _weights(n, **favoured):
    weights = np.zeros(n)
    for cls, w in favoured.items(): weights[int(cls.lstrip('c'))] = w
    return weights


class TestExact:
    def test_far_motif(self):
        # AGGAGG ends 13 bases upstream of the start
        seq = Alphabet.DNA.pack(b'AGGAGG' + b'T' * 13 + b'ATG')
        assert shine_dalgarno_exact(seq, 0, 19, _weights(N_EXACT_CLASSES, c10=1.0)) == 10

    @pytest.mark.parametrize('spacer,expected', [(13, 10), (15, 10), (16, 0), (20, 0)])
    def test_distance_cutoff(self, spacer, expected):
        # Motifs ending more than 15 bases upstream of the start are ignored
        seq = Alphabet.DNA.pack(b'AGGAGG' + b'T' * spacer + b'ATG')
        start = 6 + spacer
        assert shine_dalgarno_exact(seq, 0, start, _weights(N_EXACT_CLASSES, c10=1.0)) == expected
        assert shine_dalgarno_exact(seq, 0, start, np.arange(N_EXACT_CLASSES, dtype=float)) == expected

    def test_close_motif(self):
        # Six bases between motif and start: full-length motif with the intermediate distance flag
        seq = Alphabet.DNA.pack(b'AGGAGG' + b'T' * 6 + b'ATG')
        assert shine_dalgarno_exact(seq, 0, 12, np.arange(N_EXACT_CLASSES, dtype=float)) == 27

    def test_short_motif_near_start(self):
        seq = Alphabet.DNA.pack(b'TTTAGG' + b'TTTT' + b'ATG')
        assert shine_dalgarno_exact(seq, 0, 10, np.arange(N_EXACT_CLASSES, dtype=float)) == 1

    def test_no_motif(self):
        seq = Alphabet.DNA.pack(b'T' * 19 + b'ATG')
        assert shine_dalgarno_exact(seq, 0, 19, np.ones(N_EXACT_CLASSES)) == 0

    def test_ties_keep_lower_class(self):
        seq = Alphabet.DNA.pack(b'AGGAGG' + b'T' * 13 + b'ATG')
        assert shine_dalgarno_exact(seq, 0, 19, np.ones(N_EXACT_CLASSES)) == 0
        weights = _weights(N_EXACT_CLASSES, c2=1.0, c10=1.0)
        assert shine_dalgarno_exact(seq, 0, 19, weights) == 2

    def test_negative_weights(self):
        # Class 0 wins when every qualifying class weighs less
        seq = Alphabet.DNA.pack(b'AGGAGG' + b'T' * 13 + b'ATG')
        assert shine_dalgarno_exact(seq, 0, 19, -np.arange(N_EXACT_CLASSES, dtype=float)) == 0

    def test_region_before_contig(self):
        # The first base of the region is off the contig
        seq = Alphabet.DNA.pack(b'GGAGG' + b'T' * 13 + b'ATG')
        assert shine_dalgarno_exact(seq, -1, 18, _weights(N_EXACT_CLASSES, c10=1.0)) == 10

    @pytest.mark.parametrize('pos,start', [(0, 4), (0, 5), (3, 6), (10, 2), (-20, 2)])
    def test_short_region(self, pos, start):
        seq = Alphabet.DNA.pack(b'AGGAGGATG')
        assert shine_dalgarno_exact(seq, pos, start, np.ones(N_EXACT_CLASSES)) == 0

    def test_ambiguous_region(self):
        seq = Alphabet.DNA.pack(b'NNNNNN' + b'T' * 13 + b'ATG')
        assert shine_dalgarno_exact(seq, 0, 19, np.arange(N_EXACT_CLASSES, dtype=float)) == 0


class TestMismatch:
    def test_inner_mismatch(self):
        seq = Alphabet.DNA.pack(b'AGCAGG' + b'T' * 13 + b'ATG')
        assert shine_dalgarno_mm(seq, 0, 19, _weights(N_MISMATCH_CLASSES, c3=1.0)) == 3
        assert shine_dalgarno_mm(seq, 0, 19, _weights(N_MISMATCH_CLASSES, c2=1.0)) == 2
        # Only the trailing AGG qualifies as an exact motif
        assert shine_dalgarno_exact(seq, 0, 19, np.arange(N_EXACT_CLASSES, dtype=float)) == 2

    def test_exact_motif_is_not_a_mismatch(self):
        seq = Alphabet.DNA.pack(b'AGGAGG' + b'T' * 13 + b'ATG')
        assert shine_dalgarno_mm(seq, 0, 19, np.arange(N_MISMATCH_CLASSES, dtype=float)) == 0

    def test_edge_mismatch_rejected(self):
        seq = Alphabet.DNA.pack(b'TGGAGG' + b'T' * 13 + b'ATG')
        # Every single-mismatch window puts the T at its edge
        assert shine_dalgarno_mm(seq, 0, 19, np.arange(N_MISMATCH_CLASSES, dtype=float)) == 0

    def test_variant_argument(self):
        seq = Alphabet.DNA.pack(b'AGCAGG' + b'T' * 13 + b'ATG')
        weights = _weights(N_MISMATCH_CLASSES, c3=1.0)
        assert shine_dalgarno(seq, 0, 19, weights, MotifVariant.MISMATCH) == 3
        assert shine_dalgarno(seq, 0, 19, weights, 1) == 3


class TestWeights:
    def test_short_table(self):
        seq = Alphabet.DNA.pack(b'AGGAGG' + b'T' * 13 + b'ATG')
        with pytest.raises(ValueError):
            shine_dalgarno_exact(seq, 0, 19, np.ones(N_EXACT_CLASSES - 1))
        with pytest.raises(ValueError):
            shine_dalgarno_mm(seq, 0, 19, np.ones(N_MISMATCH_CLASSES - 1))
        # A mismatch-sized table is too short for exact motifs
        with pytest.raises(ValueError):
            shine_dalgarno_exact(seq, 0, 19, np.ones(N_MISMATCH_CLASSES))

    def test_list_weights(self):
        seq = Alphabet.DNA.pack(b'AGGAGG' + b'T' * 13 + b'ATG')
        assert shine_dalgarno_exact(seq, 0, 19, list(range(N_EXACT_CLASSES))) == 10


class TestBatch:
    @pytest.mark.parametrize('variant,n_classes', [
        (MotifVariant.EXACT, N_EXACT_CLASSES), (MotifVariant.MISMATCH, N_MISMATCH_CLASSES)
    ])
    def test_matches_scalar(self, variant, n_classes):
        rng = np.random.default_rng(5)
        # AG-rich so that motifs turn up
        seq = Alphabet.DNA.random_seq(rng, length=3000, weights=[0.4, 0.05, 0.4, 0.15])
        starts = rng.integers(0, 3000, size=400)
        positions = starts - rng.integers(5, 26, size=400)
        weights = rng.random(n_classes)
        weights[0] = 0.0
        result = shine_dalgarno_batch(seq, positions, starts, weights, variant)
        expected = [shine_dalgarno(seq, int(p), int(s), weights, variant) for p, s in zip(positions, starts)]
        np.testing.assert_array_equal(result, expected)
        assert np.any(result > 0)

    def test_shape_mismatch(self):
        seq = Alphabet.DNA.pack(b'AGGAGG' + b'T' * 13 + b'ATG')
        with pytest.raises(ValueError):
            shine_dalgarno_batch(seq, [0, 1], [19], np.ones(N_EXACT_CLASSES))
