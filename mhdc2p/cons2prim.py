# cons2prim.py
"""
Conserved -> primitive conversion for ideal-gas MHD.

Non-relativistic MHD is closed form. Special-relativistic MHD follows
Kastaun et al. (2021): a bounded false-position solve for an upper bracket
followed by a second false-position solve for the physical root μ.

Kernels are pure: the floor-corrected conserved density and energy are
returned alongside the primitive state instead of being written through a
reference, together with the floor flags (and, for SR, the iteration count).
"""

import math

from numba import jit, prange

from .atmosphere import (apply_density_floor, apply_internal_energy_floor,
                         apply_total_energy_floor, specific_energy_floor)
from .kastaun import (bracket_residual, master_residual, primitive_closure,
                      specific_internal_energy)
from .prim2cons import single_p2c_ideal_srmhd
from .root_finding import illinois_false_position
from .state import IBX, IBY, IBZ, IDN, IEN, IM1, IM2, IM3, IVX, IVY, IVZ


# ============================================================================
# NON-RELATIVISTIC MHD
# ============================================================================

@jit(nopython=True, cache=True, error_model='numpy')
def single_c2p_ideal_mhd(d, mx, my, mz, e, bx, by, bz, gamma, dfloor, pfloor):
    """
    Convert one non-relativistic conserved state.

    Returns:
        tuple: (u_d, u_e, w_d, w_vx, w_vy, w_vz, w_e, dfloor_used, efloor_used)
            u_d, u_e are the floor-corrected conserved density and total energy
    """
    efloor = pfloor / (gamma - 1.0)

    # density floor, without changing momentum or energy
    d, dfloor_used = apply_density_floor(d, dfloor)

    di = 1.0 / d
    vx = di * mx
    vy = di * my
    vz = di * mz

    e_k = 0.5 * di * (mx * mx + my * my + mz * mz)
    e_m = 0.5 * (bx * bx + by * by + bz * bz)
    e_int, e, efloor_used = apply_internal_energy_floor(e, e_k, e_m, efloor)

    return d, e, d, vx, vy, vz, e_int, dfloor_used, efloor_used


# ============================================================================
# SPECIAL-RELATIVISTIC MHD
# ============================================================================

@jit(nopython=True, error_model='numpy')
def single_c2p_ideal_srmhd(d, mx, my, mz, e, bx, by, bz, s2, b2, bdotm,
                           gamma, dfloor, pfloor):
    """
    Convert one special-relativistic conserved state.

    Args:
        d, mx, my, mz, e: D, S_i and τ = E - D
        bx, by, bz: Cell-centred magnetic field
        s2: |S|²
        b2: |B|²
        bdotm: B·S
        gamma, dfloor, pfloor: EOS parameters

    Returns:
        tuple: (u_d, u_e, w_d, w_vx, w_vy, w_vz, w_e,
                dfloor_used, efloor_used, iterations)
            velocities are the spatial components of the 4-velocity;
            iterations is the larger iteration count of the two solves

    The density floor bounds the conserved D. The rest density returned is
    D / W, so a moving cell at the floor comes back with w_d = dfloor / W.
    """
    d, dfloor_used = apply_density_floor(d, dfloor)
    e, efloor_used = apply_total_energy_floor(e, b2, gamma, pfloor)

    # recast in density-normalised variables (eq. 22-24)
    q = e / d
    r = math.sqrt(s2) / d

    isqrtd = 1.0 / math.sqrt(d)
    bxn = bx * isqrtd
    byn = by * isqrtd
    bzn = bz * isqrtd
    b2n = b2 / d
    rpar = bdotm / d * isqrtd

    # upper bracket from eq. 49; μ = 1 is the lowest enthalpy admitted by the EOS
    z_upper, iter_bracket = illinois_false_position(
        bracket_residual, (b2n, rpar, r, q), 0.0, 1.0)

    # physical root of eq. 44 in [0, z_upper]
    mu, iter_root = illinois_false_position(
        master_residual, (b2n, rpar, r, q, d, gamma, pfloor), 0.0, z_upper)

    rbar, qbar, z2, lor = primitive_closure(mu, b2n, rpar, r, q)

    w_d = d / lor                                                   # (34)
    eps = specific_internal_energy(qbar, mu, rbar, z2, lor)
    epsmin = specific_energy_floor(w_d, gamma, pfloor)
    eps_floored = eps <= epsmin
    if eps_floored:
        eps = epsmin
        efloor_used = True

    h = 1.0 + gamma * eps                                           # (43)

    conv = lor / (h * lor + b2n)                                    # (C26)
    w_vx = conv * (mx / d + bxn * rpar / (h * lor))
    w_vy = conv * (my / d + byn * rpar / (h * lor))
    w_vz = conv * (mz / d + bzn * rpar / (h * lor))
    w_e = w_d * eps

    if eps_floored:
        # keep the conserved energy consistent with the floored primitives
        e = single_p2c_ideal_srmhd(w_d, w_vx, w_vy, w_vz, w_e, bx, by, bz, gamma)[4]

    return (d, e, w_d, w_vx, w_vy, w_vz, w_e,
            dfloor_used, efloor_used, max(iter_bracket, iter_root))


# ============================================================================
# PACK KERNELS (one prange iteration per cell)
# ============================================================================

@jit(nopython=True, cache=True, parallel=True, error_model='numpy')
def c2p_ideal_mhd_pack(cons, bcc, gamma, dfloor, pfloor,
                       cons_out, prim_out, dfloor_used, efloor_used):
    """
    Args:
        cons: (5, N) conserved variables
        bcc: (3, N) cell-centred magnetic field
        cons_out: (5, N) floor-corrected conserved variables (output)
        prim_out: (5, N) primitive variables (output)
        dfloor_used, efloor_used: (N,) per-cell floor flags (output)
    """
    n = cons.shape[1]
    for i in prange(n):
        res = single_c2p_ideal_mhd(cons[IDN, i], cons[IM1, i], cons[IM2, i], cons[IM3, i],
                                   cons[IEN, i], bcc[IBX, i], bcc[IBY, i], bcc[IBZ, i],
                                   gamma, dfloor, pfloor)
        cons_out[IDN, i] = res[0]
        cons_out[IM1, i] = cons[IM1, i]
        cons_out[IM2, i] = cons[IM2, i]
        cons_out[IM3, i] = cons[IM3, i]
        cons_out[IEN, i] = res[1]
        prim_out[IDN, i] = res[2]
        prim_out[IVX, i] = res[3]
        prim_out[IVY, i] = res[4]
        prim_out[IVZ, i] = res[5]
        prim_out[IEN, i] = res[6]
        dfloor_used[i] = res[7]
        efloor_used[i] = res[8]


@jit(nopython=True, parallel=True, error_model='numpy')
def c2p_ideal_srmhd_pack(cons, bcc, gamma, dfloor, pfloor,
                         cons_out, prim_out, dfloor_used, efloor_used, iterations):
    """
    Same layout as `c2p_ideal_mhd_pack`, plus the per-cell iteration count.
    The scalar invariants |S|², |B|² and B·S are formed from the input state.
    """
    n = cons.shape[1]
    for i in prange(n):
        mx = cons[IM1, i]
        my = cons[IM2, i]
        mz = cons[IM3, i]
        bx = bcc[IBX, i]
        by = bcc[IBY, i]
        bz = bcc[IBZ, i]
        s2 = mx * mx + my * my + mz * mz
        b2 = bx * bx + by * by + bz * bz
        bdotm = bx * mx + by * my + bz * mz
        res = single_c2p_ideal_srmhd(cons[IDN, i], mx, my, mz, cons[IEN, i], bx, by, bz,
                                     s2, b2, bdotm, gamma, dfloor, pfloor)
        cons_out[IDN, i] = res[0]
        cons_out[IM1, i] = mx
        cons_out[IM2, i] = my
        cons_out[IM3, i] = mz
        cons_out[IEN, i] = res[1]
        prim_out[IDN, i] = res[2]
        prim_out[IVX, i] = res[3]
        prim_out[IVY, i] = res[4]
        prim_out[IVZ, i] = res[5]
        prim_out[IEN, i] = res[6]
        dfloor_used[i] = res[7]
        efloor_used[i] = res[8]
        iterations[i] = res[9]
