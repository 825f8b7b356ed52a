"""
Containers for packed nucleotide sequences and their writable builders.
"""
