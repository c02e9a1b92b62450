"""
tsdual Core Module.

Building blocks shared by every pass:

    - Resolver: graph of the files in a package and specifier resolution
    - Entry, EntryKind: nodes of that graph
    - DeclarationSets: value/type partition of a module's bindings
    - errors: the error taxonomy rooted at TsdualError
"""

from .errors import TsdualError
from .resolver import Resolver
from .types import DeclarationSets, Entry, EntryKind, ParseState

__all__ = [
    "DeclarationSets",
    "Entry",
    "EntryKind",
    "ParseState",
    "Resolver",
    "TsdualError",
]
