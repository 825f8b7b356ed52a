import numpy as np
import pytest
from orfcore.core.alphabet import Alphabet
from orfcore.containers.seq import PackedSeq, PackedSeqBuilder, CapacityExceededError, check_capacity


@pytest.fixture
def rand_seq():
    return Alphabet.DNA.random_seq(np.random.default_rng(7), length=1003, ambiguous=0.05)


class TestPredicates:
    def test_bases(self):
        seq = Alphabet.DNA.pack(b'ACGT')
        assert seq.is_a(0) and seq.is_c(1) and seq.is_g(2) and seq.is_t(3)
        assert [seq.code(i) for i in range(4)] == [PackedSeq.A, PackedSeq.C, PackedSeq.G, PackedSeq.T]

    def test_exactly_one_base(self, rand_seq):
        for i in range(len(rand_seq)):
            assert sum((rand_seq.is_a(i), rand_seq.is_c(i), rand_seq.is_g(i), rand_seq.is_t(i))) == 1

    def test_is_gc(self):
        seq = Alphabet.DNA.pack(b'ACGTN')
        assert [seq.is_gc(i) for i in range(5)] == [False, True, True, False, False]

    def test_ambiguous_is_t(self):
        seq = Alphabet.DNA.pack(b'ANRt')
        assert seq.is_n(1) and seq.is_n(2) and not seq.is_n(3)
        assert seq.is_t(1) and seq.is_t(2) and seq.is_t(3)

    def test_out_of_range(self):
        seq = Alphabet.DNA.pack(b'ACGT')
        with pytest.raises(IndexError):
            seq.is_a(4)
        with pytest.raises(IndexError):
            seq.is_n(-1)

    def test_codon(self):
        seq = Alphabet.DNA.pack(b'ATGAA')
        assert seq.codon(0) == (0 << 4) | (3 << 2) | 2
        assert seq.codon(2) == (2 << 4) | (0 << 2) | 0
        # Overruns are "no codon"
        assert seq.codon(3) == -1
        assert seq.codon(-1) == -1

    def test_codons_match_scalar(self, rand_seq):
        codons = rand_seq.codons()
        assert len(codons) == len(rand_seq) - 2
        assert all(codons[i] == rand_seq.codon(i) for i in range(0, len(codons), 17))


class TestGaps:
    def test_nnn(self):
        seq = Alphabet.DNA.pack(b'ANNNA')
        assert seq.is_nnn(1)
        assert not seq.is_nnn(0)
        assert seq.codon_has_n(0)
        assert not seq.codon_has_n(4)  # reads past the end are not ambiguous

    def test_gap_to_left(self):
        gap = PackedSeq.GAP_WIDTH
        seq = Alphabet.DNA.pack(b'AAA' + b'N' * gap + b'ATGAAA')
        assert seq.gap_to_left(3 + gap)
        assert not seq.gap_to_left(6 + gap)
        assert not seq.gap_to_left(0)

    def test_gap_to_right(self):
        gap = PackedSeq.GAP_WIDTH
        seq = Alphabet.DNA.pack(b'ATG' + b'N' * gap + b'AAA')
        assert seq.gap_to_right(0)
        assert not seq.gap_to_right(6)


class TestReverseComplement:
    def test_simple(self):
        seq = Alphabet.DNA.pack(b'AACGN')
        rc = seq.reverse_complement()
        assert str(rc) == 'NCGTT'
        # The ambiguous T is complemented to A
        assert rc.is_a(0) and rc.is_n(0)

    def test_double_reverse_complement(self, rand_seq):
        twice = rand_seq.reverse_complement().reverse_complement()
        np.testing.assert_array_equal(twice.codes(), rand_seq.codes())
        np.testing.assert_array_equal(twice.ambiguity(), rand_seq.ambiguity())
        assert twice == rand_seq

    def test_cached(self, rand_seq):
        rc = rand_seq.reverse_complement()
        assert rand_seq.reverse_complement() is rc
        assert rc.reverse_complement() is rand_seq

    def test_mirrored(self, rand_seq):
        rc = rand_seq.reverse_complement()
        n = len(rand_seq)
        for i in (0, 1, 500, n - 1):
            assert rc.code(n - 1 - i) == 3 - rand_seq.code(i)
            assert rc.is_n(n - 1 - i) == rand_seq.is_n(i)


class TestGC:
    def test_global(self):
        assert Alphabet.DNA.pack(b'GGCCAT').gc == pytest.approx(4 / 6)
        assert Alphabet.DNA.pack(b'').gc == 0.0

    def test_ambiguous_counts_as_t(self):
        assert Alphabet.DNA.pack(b'GNNN').gc == pytest.approx(0.25)

    def test_range(self):
        seq = Alphabet.DNA.pack(b'AAGGCCTT')
        assert seq.gc_content(2, 5) == pytest.approx(1.0)
        assert seq.gc_content(0, 3) == pytest.approx(0.5)
        with pytest.raises(ValueError):
            seq.gc_content(3, 2)


class TestImmutability:
    def test_read_only(self):
        seq = Alphabet.DNA.pack(b'ACGT')
        bit0, bit1 = seq.bits
        with pytest.raises(ValueError):
            bit0[0] = 1
        with pytest.raises(ValueError):
            seq.ambiguity_bits[0] = 1

    def test_direct_construction(self):
        empty = np.zeros(1, dtype=np.uint8)
        with pytest.raises(PermissionError):
            PackedSeq(empty, empty.copy(), empty.copy(), 4, Alphabet.DNA)
        with pytest.raises(PermissionError):
            PackedSeqBuilder(4, Alphabet.DNA)

    def test_hash_eq(self):
        a, b = Alphabet.DNA.pack(b'ACGTN'), Alphabet.DNA.pack(b'acgtn')
        assert a == b and hash(a) == hash(b)
        assert a != Alphabet.DNA.pack(b'ACGTT')  # same codes, different ambiguity


class TestBuilder:
    def test_build(self):
        builder = Alphabet.DNA.builder(5)
        for i, base in enumerate('GATCN'): builder.set_symbol(i, base)
        seq = builder.freeze()
        assert str(seq) == 'GATCN'
        assert seq == Alphabet.DNA.pack(b'GATCN')

    def test_overwrite(self):
        builder = Alphabet.DNA.builder(2)
        builder.set(0, PackedSeq.G, ambiguous=True)
        builder.set(0, PackedSeq.C)
        seq = builder.freeze()
        assert seq.is_c(0) and not seq.is_n(0) and seq.is_a(1)

    def test_frozen(self):
        builder = Alphabet.DNA.builder(3)
        builder.freeze()
        with pytest.raises(PermissionError):
            builder.set(0, PackedSeq.A)
        with pytest.raises(PermissionError):
            builder.freeze()

    def test_invalid_writes(self):
        builder = Alphabet.DNA.builder(3)
        with pytest.raises(IndexError):
            builder.set(3, PackedSeq.A)
        with pytest.raises(ValueError):
            builder.set(0, 4)

    def test_capacity(self):
        with pytest.raises(CapacityExceededError):
            Alphabet.DNA.builder(PackedSeq.MAX_LEN + 1)
        with pytest.raises(CapacityExceededError):
            Alphabet.DNA.builder(10, max_len=9)
        with pytest.raises(ValueError):
            check_capacity(-1)


class TestText:
    def test_repr(self):
        seq = Alphabet.DNA.pack(b'ACGTACGTACGTACGTACGT')
        assert repr(seq) == 'ACGTACG...CGTACGT'
        assert repr(Alphabet.DNA.pack(b'ACGN')) == 'ACGN'

    def test_tobytes_range(self):
        seq = Alphabet.DNA.pack(b'ACGTNACGT')
        assert seq.tobytes(3, 6) == b'TNA'
        assert bytes(seq) == b'ACGTNACGT'
