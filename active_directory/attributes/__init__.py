from .snapshot import AttributeSnapshot, DirectoryEntry
from .mutator import AttributeMutator, MutationResult
from .ranged_reader import RangedAttributeReader, RangedReadResult

__all__ = [
    'AttributeSnapshot',
    'DirectoryEntry',
    'AttributeMutator',
    'MutationResult',
    'RangedAttributeReader',
    'RangedReadResult',
]
