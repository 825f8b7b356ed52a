"""
Top-level module: packed sequences, genetic codes and the per-base scoring engines used by gene finding.
"""
from orfcore.lib.resources import RESOURCES, OrfcoreWarning
from orfcore.containers.seq import PackedSeq, PackedSeqBuilder, CapacityExceededError
from orfcore.core.alphabet import Alphabet, AlphabetError
from orfcore.core.code import GeneticCode, GeneticCodeError, InvalidTableIdError, TranslationWarning
from orfcore.engines.gc import gc_frame_plot, reverse_frame
from orfcore.engines.kmer import KmerBackground, KmerWarning, mer_index, mer_text
from orfcore.engines.rbs import (MotifVariant, shine_dalgarno, shine_dalgarno_exact, shine_dalgarno_mm,
                                 shine_dalgarno_batch)

__all__ = [
    'RESOURCES', 'OrfcoreWarning', 'PackedSeq', 'PackedSeqBuilder', 'CapacityExceededError', 'Alphabet',
    'AlphabetError', 'GeneticCode', 'GeneticCodeError', 'InvalidTableIdError', 'TranslationWarning',
    'gc_frame_plot', 'reverse_frame', 'KmerBackground', 'KmerWarning', 'mer_index', 'mer_text', 'MotifVariant',
    'shine_dalgarno', 'shine_dalgarno_exact', 'shine_dalgarno_mm', 'shine_dalgarno_batch',
]
