# prim2cons.py
"""
Primitive -> conserved conversion for ideal-gas MHD.

Closed form in all three regimes; nothing here iterates or floors.

    Non-relativistic:
        m = ρ v
        e = e_int + ρ|v|²/2 + |B|²/2

    Special relativity (v = u^i, spatial part of the 4-velocity):
        D = ρ u⁰
        e = T⁰⁰ - D                     (evolve E - D)
        m_i = T⁰ᵢ

    General relativity (v = ũ^i, normal-frame 4-velocity):
        D = ρ u⁰
        e = T^t_t + D
        m_i = T^t_i
"""

import math

from numba import jit, prange

from .state import IBX, IBY, IBZ, IDN, IEN, IM1, IM2, IM3, IVX, IVY, IVZ


# ============================================================================
# SINGLE-CELL KERNELS
# ============================================================================

@jit(nopython=True, cache=True, error_model='numpy')
def single_p2c_ideal_mhd(d, vx, vy, vz, e, bx, by, bz):
    """
    Non-relativistic MHD, exact inverse of `single_c2p_ideal_mhd`.

    Returns:
        tuple: (d, mx, my, mz, e)
    """
    mx = d * vx
    my = d * vy
    mz = d * vz
    e_tot = e + 0.5 * (d * (vx * vx + vy * vy + vz * vz) +
                       (bx * bx + by * by + bz * bz))
    return d, mx, my, mz, e_tot


@jit(nopython=True, cache=True, error_model='numpy')
def single_p2c_ideal_srmhd(d, vx, vy, vz, e, bx, by, bz, gamma):
    """
    Special-relativistic MHD.

    Returns:
        tuple: (D, mx, my, mz, E - D)
    """
    # Lorentz factor
    u0 = math.sqrt(1.0 + vx * vx + vy * vy + vz * vz)

    # 4-magnetic field
    b0 = bx * vx + by * vy + bz * vz
    b1 = (bx + b0 * vx) / u0
    b2 = (by + b0 * vy) / u0
    b3 = (bz + b0 * vz) / u0
    b_sq = -b0 * b0 + b1 * b1 + b2 * b2 + b3 * b3

    wtot_u02 = (d + gamma * e + b_sq) * u0 * u0
    u_d = d * u0
    u_e = wtot_u02 - b0 * b0 - ((gamma - 1.0) * e + 0.5 * b_sq) - u_d
    u_mx = wtot_u02 * vx / u0 - b0 * b1
    u_my = wtot_u02 * vy / u0 - b0 * b2
    u_mz = wtot_u02 * vz / u0 - b0 * b3
    return u_d, u_mx, u_my, u_mz, u_e


@jit(nopython=True, cache=True, error_model='numpy')
def single_p2c_ideal_grmhd(glower, gupper, d, vx, vy, vz, e, bx, by, bz, gamma):
    """
    General-relativistic MHD.

    Args:
        glower: (4, 4) covariant metric g_μν
        gupper: (4, 4) contravariant metric g^μν

    Returns:
        tuple: (D, m_1, m_2, m_3, T^t_t + D)
    """
    # 4-velocity (exploiting symmetry of the metric)
    q = (glower[1, 1] * vx * vx + 2.0 * glower[1, 2] * vx * vy + 2.0 * glower[1, 3] * vx * vz
         + glower[2, 2] * vy * vy + 2.0 * glower[2, 3] * vy * vz
         + glower[3, 3] * vz * vz)
    alpha = math.sqrt(-1.0 / gupper[0, 0])
    lor = math.sqrt(1.0 + q)
    u0 = lor / alpha
    u1 = vx - alpha * lor * gupper[0, 1]
    u2 = vy - alpha * lor * gupper[0, 2]
    u3 = vz - alpha * lor * gupper[0, 3]

    # lower indices
    u_0 = glower[0, 0] * u0 + glower[0, 1] * u1 + glower[0, 2] * u2 + glower[0, 3] * u3
    u_1 = glower[1, 0] * u0 + glower[1, 1] * u1 + glower[1, 2] * u2 + glower[1, 3] * u3
    u_2 = glower[2, 0] * u0 + glower[2, 1] * u1 + glower[2, 2] * u2 + glower[2, 3] * u3
    u_3 = glower[3, 0] * u0 + glower[3, 1] * u1 + glower[3, 2] * u2 + glower[3, 3] * u3

    # 4-magnetic field
    b0 = u_1 * bx + u_2 * by + u_3 * bz
    b1 = (bx + b0 * u1) / u0
    b2 = (by + b0 * u2) / u0
    b3 = (bz + b0 * u3) / u0

    b_0 = glower[0, 0] * b0 + glower[0, 1] * b1 + glower[0, 2] * b2 + glower[0, 3] * b3
    b_1 = glower[1, 0] * b0 + glower[1, 1] * b1 + glower[1, 2] * b2 + glower[1, 3] * b3
    b_2 = glower[2, 0] * b0 + glower[2, 1] * b1 + glower[2, 2] * b2 + glower[2, 3] * b3
    b_3 = glower[3, 0] * b0 + glower[3, 1] * b1 + glower[3, 2] * b2 + glower[3, 3] * b3
    b_sq = b0 * b_0 + b1 * b_1 + b2 * b_2 + b3 * b_3

    wtot = d + gamma * e + b_sq
    ptot = (gamma - 1.0) * e + 0.5 * b_sq
    u_d = d * u0
    u_e = wtot * u0 * u_0 - b0 * b_0 + ptot + u_d
    u_mx = wtot * u0 * u_1 - b0 * b_1
    u_my = wtot * u0 * u_2 - b0 * b_2
    u_mz = wtot * u0 * u_3 - b0 * b_3
    return u_d, u_mx, u_my, u_mz, u_e


# ============================================================================
# PACK KERNELS (one prange iteration per cell)
# ============================================================================

@jit(nopython=True, cache=True, parallel=True, error_model='numpy')
def p2c_ideal_mhd_pack(prim, bcc, cons_out):
    """
    Args:
        prim: (5, N) primitive variables
        bcc: (3, N) cell-centred magnetic field
        cons_out: (5, N) output conserved variables
    """
    n = prim.shape[1]
    for i in prange(n):
        res = single_p2c_ideal_mhd(prim[IDN, i], prim[IVX, i], prim[IVY, i], prim[IVZ, i],
                                   prim[IEN, i], bcc[IBX, i], bcc[IBY, i], bcc[IBZ, i])
        cons_out[IDN, i] = res[0]
        cons_out[IM1, i] = res[1]
        cons_out[IM2, i] = res[2]
        cons_out[IM3, i] = res[3]
        cons_out[IEN, i] = res[4]


@jit(nopython=True, cache=True, parallel=True, error_model='numpy')
def p2c_ideal_srmhd_pack(prim, bcc, gamma, cons_out):
    n = prim.shape[1]
    for i in prange(n):
        res = single_p2c_ideal_srmhd(prim[IDN, i], prim[IVX, i], prim[IVY, i], prim[IVZ, i],
                                     prim[IEN, i], bcc[IBX, i], bcc[IBY, i], bcc[IBZ, i],
                                     gamma)
        cons_out[IDN, i] = res[0]
        cons_out[IM1, i] = res[1]
        cons_out[IM2, i] = res[2]
        cons_out[IM3, i] = res[3]
        cons_out[IEN, i] = res[4]


@jit(nopython=True, cache=True, parallel=True, error_model='numpy')
def p2c_ideal_grmhd_pack(glower, gupper, prim, bcc, gamma, cons_out):
    """
    Args:
        glower, gupper: (N, 4, 4) metric at the cell centres
    """
    n = prim.shape[1]
    for i in prange(n):
        res = single_p2c_ideal_grmhd(glower[i], gupper[i],
                                     prim[IDN, i], prim[IVX, i], prim[IVY, i], prim[IVZ, i],
                                     prim[IEN, i],
                                     bcc[IBX, i], bcc[IBY, i], bcc[IBZ, i], gamma)
        cons_out[IDN, i] = res[0]
        cons_out[IM1, i] = res[1]
        cons_out[IM2, i] = res[2]
        cons_out[IM3, i] = res[3]
        cons_out[IEN, i] = res[4]

