# state.py
"""
Value types shared by the converters.

Array layout follows the usual (nvar, ...) convention: conserved and primitive
arrays carry NHYDRO leading components, cell-centred magnetic fields are kept
in a separate (3, ...) array.
"""

from dataclasses import dataclass
from typing import Iterable, NamedTuple

import numpy as np

# conserved variables
IDN = 0
IM1 = 1
IM2 = 2
IM3 = 3
IEN = 4

# primitive variables (density and internal energy share IDN / IEN)
IVX = 1
IVY = 2
IVZ = 3

# cell-centred magnetic field
IBX = 0
IBY = 1
IBZ = 2

NHYDRO = 5


class ConservedState(NamedTuple):
    """Conserved MHD state of one cell (cell-centred B)."""
    d: float
    mx: float
    my: float
    mz: float
    e: float
    bx: float = 0.0
    by: float = 0.0
    bz: float = 0.0


class PrimitiveState(NamedTuple):
    """
    Primitive state of one cell. `e` is the internal energy density; in the
    relativistic regimes (vx, vy, vz) is the spatial part of the 4-velocity.
    """
    d: float
    vx: float
    vy: float
    vz: float
    e: float


class MagneticField(NamedTuple):
    bx: float = 0.0
    by: float = 0.0
    bz: float = 0.0


@dataclass(frozen=True)
class C2PDiagnostics:
    """
    Floor and iteration diagnostics of one or many conversions.

    Combining is associative and commutative (logical OR, integer max) so the
    order in which cells are reduced never changes the result.
    """

    dfloor_used: bool = False
    efloor_used: bool = False
    max_iter: int = 0

    def combine(self, other: "C2PDiagnostics") -> "C2PDiagnostics":
        return C2PDiagnostics(
            dfloor_used=self.dfloor_used or other.dfloor_used,
            efloor_used=self.efloor_used or other.efloor_used,
            max_iter=max(self.max_iter, other.max_iter),
        )

    __or__ = combine

    @classmethod
    def reduce(cls, items: Iterable["C2PDiagnostics"]) -> "C2PDiagnostics":
        result = cls()
        for item in items:
            result = result.combine(item)
        return result

    @classmethod
    def from_arrays(cls, dfloor_used, efloor_used, iterations=None) -> "C2PDiagnostics":
        """Reduce per-cell flag / iteration arrays produced by a pack kernel."""
        max_iter = 0
        if iterations is not None and np.size(iterations) > 0:
            max_iter = int(np.max(iterations))
        return cls(
            dfloor_used=bool(np.any(dfloor_used)),
            efloor_used=bool(np.any(efloor_used)),
            max_iter=max_iter,
        )


class C2PResult(NamedTuple):
    """
    Result of a conserved -> primitive conversion.

    `cons` is the floor-corrected conserved state; callers that own the
    conserved storage should write it back to keep energy accounting
    consistent with `prim`.
    """
    cons: object
    prim: object
    diagnostics: C2PDiagnostics
