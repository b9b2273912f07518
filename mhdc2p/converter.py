# converter.py
"""
Array-level conversion driver.

Runs the single-cell kernels over whole arrays of cells ("packs") with the
selected backend and reduces the per-cell floor flags and iteration counts
into one C2PDiagnostics record.

Array layout:
    cons, prim: (5, ...)  -- IDN, IM1/IVX, IM2/IVY, IM3/IVZ, IEN
    bcc:        (3, ...)  -- IBX, IBY, IBZ
"""

import logging
from typing import Any, Mapping, Optional

import numpy as np

from .backend import Backend, get_backend, is_jax_backend, resolve_backend
from .cons2prim import (c2p_ideal_mhd_pack, c2p_ideal_srmhd_pack,
                        single_c2p_ideal_mhd, single_c2p_ideal_srmhd)
from .eos import EOSParams
from .metric import SpacetimeMetric
from .prim2cons import (p2c_ideal_grmhd_pack, p2c_ideal_mhd_pack, p2c_ideal_srmhd_pack,
                        single_p2c_ideal_grmhd, single_p2c_ideal_mhd, single_p2c_ideal_srmhd)
from .state import (NHYDRO, C2PDiagnostics, C2PResult, ConservedState, MagneticField,
                    PrimitiveState)

logger = logging.getLogger(__name__)

RELATIVITY_MODES = ("none", "special", "general")


def _check_relativity(relativity: str) -> str:
    if relativity not in RELATIVITY_MODES:
        raise ValueError(f"Unknown relativity mode '{relativity}'. "
                         f"Available: {list(RELATIVITY_MODES)}")
    return relativity


# ============================================================================
# MAIN CONVERTER CLASS
# ============================================================================

class IdealMHDConverter:
    """
    Conserved <-> primitive converter for ideal-gas MHD over arrays of cells.

    Args:
        eos: EOSParams (gamma, dfloor, pfloor)
        relativity: 'none', 'special' or 'general'
        backend: Backend or backend name; None uses the MHDC2P_BACKEND
            environment variable

    General relativity only supports primitive -> conserved; the metric is
    supplied per call.
    """

    def __init__(self, eos: EOSParams, relativity: str = "none", backend=None):
        self.eos = eos
        self.relativity = _check_relativity(relativity)

        if backend is None:
            backend = get_backend()
        elif not isinstance(backend, Backend):
            backend = resolve_backend(backend)
        self.backend = backend

        # Statistics tracking
        self.stats = {
            "total_calls": 0,
            "cells_converted": 0,
            "density_floors_applied": 0,
            "energy_floors_applied": 0,
            "max_iterations": 0,
        }

    def __repr__(self):
        return (f"IdealMHDConverter(eos={self.eos!r}, relativity={self.relativity!r}, "
                f"backend={self.backend.value!r})")

    # ------------------------------------------------------------------
    # Conserved -> primitive
    # ------------------------------------------------------------------

    def cons_to_prim(self, cons, bcc=None, inplace=False) -> C2PResult:
        """
        Convert conserved to primitive variables.

        Args:
            cons: (5, ...) conserved variables; energy is E - D for SR
            bcc: (3, ...) cell-centred magnetic field (None for pure hydro)
            inplace: Write the floor-corrected density and energy back into
                `cons` (which must then be a writable float64 ndarray)

        Returns:
            C2PResult: (cons, prim, diagnostics); `cons` is the corrected
            conserved array, the same object as the input when inplace=True
        """
        if self.relativity == "general":
            raise NotImplementedError("conserved -> primitive is not available for GR")

        c, shape = self._flatten(cons, NHYDRO, "cons")
        b = self._flatten_field(bcc, c.shape[1])
        gamma, dfloor, pfloor = self.eos.as_tuple()

        if is_jax_backend(self.backend):
            cons_out, prim, dfloor_used, efloor_used, iterations = self._cons_to_prim_jax(c, b)
        else:
            n = c.shape[1]
            cons_out = np.empty_like(c)
            prim = np.empty_like(c)
            dfloor_used = np.zeros(n, dtype=np.bool_)
            efloor_used = np.zeros(n, dtype=np.bool_)
            iterations = None
            if self.relativity == "special":
                iterations = np.zeros(n, dtype=np.int64)
                c2p_ideal_srmhd_pack(c, b, gamma, dfloor, pfloor,
                                     cons_out, prim, dfloor_used, efloor_used, iterations)
            else:
                c2p_ideal_mhd_pack(c, b, gamma, dfloor, pfloor,
                                   cons_out, prim, dfloor_used, efloor_used)

        diagnostics = C2PDiagnostics.from_arrays(dfloor_used, efloor_used, iterations)
        self._record(c.shape[1], dfloor_used, efloor_used, diagnostics)

        cons_out = cons_out.reshape(shape)
        prim = prim.reshape(shape)
        if inplace:
            cons[...] = cons_out
            cons_out = cons
        return C2PResult(cons=cons_out, prim=prim, diagnostics=diagnostics)

    def _cons_to_prim_jax(self, c, b):
        import jax.numpy as jnp
        from .jax.cons2prim_jax import c2p_ideal_mhd_jax, c2p_ideal_srmhd_jax

        gamma, dfloor, pfloor = self.eos.as_tuple()
        if self.relativity == "special":
            out = c2p_ideal_srmhd_jax(jnp.asarray(c), jnp.asarray(b), gamma, dfloor, pfloor)
            return tuple(np.asarray(x) for x in out)
        out = c2p_ideal_mhd_jax(jnp.asarray(c), jnp.asarray(b), gamma, dfloor, pfloor)
        return tuple(np.asarray(x) for x in out) + (None,)

    # ------------------------------------------------------------------
    # Primitive -> conserved
    # ------------------------------------------------------------------

    def prim_to_cons(self, prim, bcc=None, metric: Optional[SpacetimeMetric] = None):
        """
        Convert primitive to conserved variables.

        Args:
            prim: (5, ...) primitive variables
            bcc: (3, ...) cell-centred magnetic field (None for pure hydro)
            metric: SpacetimeMetric with one entry per cell (or a single
                entry broadcast to all cells); required for GR

        Returns:
            array: (5, ...) conserved variables
        """
        p, shape = self._flatten(prim, NHYDRO, "prim")
        n = p.shape[1]
        b = self._flatten_field(bcc, n)
        gamma = self.eos.gamma

        if self.relativity == "general":
            if metric is None:
                raise ValueError("general relativistic prim_to_cons requires a metric")
            metric = metric.broadcast_to(n)

        if is_jax_backend(self.backend):
            cons = self._prim_to_cons_jax(p, b, metric)
        else:
            cons = np.empty_like(p)
            if self.relativity == "general":
                p2c_ideal_grmhd_pack(metric.glower, metric.gupper, p, b, gamma, cons)
            elif self.relativity == "special":
                p2c_ideal_srmhd_pack(p, b, gamma, cons)
            else:
                p2c_ideal_mhd_pack(p, b, cons)

        return cons.reshape(shape)

    def _prim_to_cons_jax(self, p, b, metric):
        import jax.numpy as jnp
        from .jax.cons2prim_jax import (p2c_ideal_grmhd_jax, p2c_ideal_mhd_jax,
                                        p2c_ideal_srmhd_jax)

        gamma = self.eos.gamma
        if self.relativity == "general":
            out = p2c_ideal_grmhd_jax(jnp.asarray(metric.glower), jnp.asarray(metric.gupper),
                                      jnp.asarray(p), jnp.asarray(b), gamma)
        elif self.relativity == "special":
            out = p2c_ideal_srmhd_jax(jnp.asarray(p), jnp.asarray(b), gamma)
        else:
            out = p2c_ideal_mhd_jax(jnp.asarray(p), jnp.asarray(b))
        return np.asarray(out)

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def _record(self, n, dfloor_used, efloor_used, diagnostics):
        n_dfloor = int(np.count_nonzero(dfloor_used))
        n_efloor = int(np.count_nonzero(efloor_used))
        self.stats["total_calls"] += 1
        self.stats["cells_converted"] += n
        self.stats["density_floors_applied"] += n_dfloor
        self.stats["energy_floors_applied"] += n_efloor
        self.stats["max_iterations"] = max(self.stats["max_iterations"], diagnostics.max_iter)
        if n_dfloor or n_efloor:
            logger.debug("cons_to_prim: density floor in %d, energy floor in %d of %d cells",
                         n_dfloor, n_efloor, n)

    def get_statistics(self):
        """Get conversion statistics."""
        cells = max(self.stats["cells_converted"], 1)
        return {
            **self.stats,
            "density_floor_rate": self.stats["density_floors_applied"] / cells,
            "energy_floor_rate": self.stats["energy_floors_applied"] / cells,
        }

    def reset_statistics(self):
        """Reset all statistics counters."""
        for key in self.stats:
            self.stats[key] = 0

    def log_statistics(self, level=logging.INFO):
        """Emit a one-line run summary of floor usage and solver iterations."""
        s = self.get_statistics()
        logger.log(level,
                   "cons_to_prim: %d calls, %d cells, density floor %d (%.2e), "
                   "energy floor %d (%.2e), max iterations %d",
                   s["total_calls"], s["cells_converted"],
                   s["density_floors_applied"], s["density_floor_rate"],
                   s["energy_floors_applied"], s["energy_floor_rate"],
                   s["max_iterations"])

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _flatten(arr, nvar, name):
        arr = np.asarray(arr, dtype=np.float64)
        if arr.ndim < 1 or arr.shape[0] != nvar:
            raise ValueError(f"{name} must have shape ({nvar}, ...), got {arr.shape}")
        return np.ascontiguousarray(arr.reshape(nvar, -1)), arr.shape

    @staticmethod
    def _flatten_field(bcc, n):
        if bcc is None:
            return np.zeros((3, n))
        b = np.ascontiguousarray(np.asarray(bcc, dtype=np.float64).reshape(3, -1))
        if b.shape[1] != n:
            raise ValueError(f"bcc has {b.shape[1]} cells, expected {n}")
        return b


# ============================================================================
# FACTORY
# ============================================================================

def create_converter(params: Optional[Mapping[str, Any]] = None, **kwargs) -> IdealMHDConverter:
    """
    Build a converter from a flat parameter mapping (e.g. the <hydro> block).

    Recognised keys: eos ('adiabatic' only), gamma, dfloor, pfloor,
    special_rel, general_rel, backend.

    Examples
    --------
    >>> conv = create_converter({"gamma": 4.0/3.0, "special_rel": True})
    """
    params = dict(params or {}, **kwargs)

    eos_name = params.get("eos", "adiabatic")
    if eos_name != "adiabatic":
        raise ValueError(f"eos = '{eos_name}' not implemented")

    special = bool(params.get("special_rel", False))
    general = bool(params.get("general_rel", False))
    if special and general:
        raise ValueError("Cannot specify both SR and GR at same time")

    if special:
        relativity = "special"
    elif general:
        relativity = "general"
    else:
        relativity = "none"

    return IdealMHDConverter(EOSParams.from_dict(params), relativity=relativity,
                             backend=params.get("backend"))


# ============================================================================
# SINGLE-CELL CONVENIENCE API
# ============================================================================

def cons_to_prim(u: ConservedState, eos: EOSParams, relativity: str = "none") -> C2PResult:
    """
    Convert one cell.

    Returns:
        C2PResult: (ConservedState, PrimitiveState, C2PDiagnostics)
    """
    _check_relativity(relativity)
    gamma, dfloor, pfloor = eos.as_tuple()
    d, mx, my, mz, e, bx, by, bz = (float(x) for x in u)

    if relativity == "special":
        s2 = mx * mx + my * my + mz * mz
        b2 = bx * bx + by * by + bz * bz
        bdotm = bx * mx + by * my + bz * mz
        res = single_c2p_ideal_srmhd(d, mx, my, mz, e, bx, by, bz, s2, b2, bdotm,
                                     gamma, dfloor, pfloor)
        iterations = int(res[9])
    elif relativity == "none":
        res = single_c2p_ideal_mhd(d, mx, my, mz, e, bx, by, bz, gamma, dfloor, pfloor)
        iterations = 0
    else:
        raise NotImplementedError("conserved -> primitive is not available for GR")

    cons = u._replace(d=float(res[0]), e=float(res[1]))
    prim = PrimitiveState(*(float(x) for x in res[2:7]))
    diagnostics = C2PDiagnostics(dfloor_used=bool(res[7]), efloor_used=bool(res[8]),
                                 max_iter=iterations)
    return C2PResult(cons=cons, prim=prim, diagnostics=diagnostics)


def prim_to_cons(w: PrimitiveState, b: MagneticField = MagneticField(),
                 eos: Optional[EOSParams] = None, relativity: str = "none",
                 metric: Optional[SpacetimeMetric] = None) -> ConservedState:
    """
    Convert one cell. `eos` is required in the relativistic regimes and
    `metric` (a single-entry SpacetimeMetric) in GR.
    """
    _check_relativity(relativity)
    d, vx, vy, vz, e = (float(x) for x in w)
    bx, by, bz = (float(x) for x in b)

    if relativity == "none":
        res = single_p2c_ideal_mhd(d, vx, vy, vz, e, bx, by, bz)
    else:
        if eos is None:
            raise ValueError("relativistic prim_to_cons requires eos")
        if relativity == "special":
            res = single_p2c_ideal_srmhd(d, vx, vy, vz, e, bx, by, bz, eos.gamma)
        else:
            if metric is None:
                raise ValueError("general relativistic prim_to_cons requires a metric")
            res = single_p2c_ideal_grmhd(metric.glower[0], metric.gupper[0],
                                         d, vx, vy, vz, e, bx, by, bz, eos.gamma)

    return ConservedState(*(float(x) for x in res), bx, by, bz)
