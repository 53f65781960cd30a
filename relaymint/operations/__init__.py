"""
Operations: instruction batches and the builders that produce them.
"""

from .model import AuthoritySlot, Instruction, MetadataFields, Operation
from .builder import OperationBuilder, TokenProgramBuilder

__all__ = [
    "AuthoritySlot",
    "Instruction",
    "MetadataFields",
    "Operation",
    "OperationBuilder",
    "TokenProgramBuilder",
]
