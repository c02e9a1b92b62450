"""Patchers that fix module references in compiled outputs."""

from .patcher import (
    CjsCodePatcher,
    CjsDeclarationsPatcher,
    EsmCodePatcher,
    EsmDeclarationsPatcher,
    Patcher,
    UnsupportedLoad,
)

__all__ = [
    "CjsCodePatcher",
    "CjsDeclarationsPatcher",
    "EsmCodePatcher",
    "EsmDeclarationsPatcher",
    "Patcher",
    "UnsupportedLoad",
]
