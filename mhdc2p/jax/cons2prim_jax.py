"""
JAX conserved <-> primitive conversion for ideal-gas MHD.

Mirrors cons2prim.py / prim2cons.py operation by operation so that both
backends return the same primitives, floor flags and iteration counts. The SR
solver runs a fixed-trip-count `lax.fori_loop` per phase; converged lanes are
frozen with `jnp.where` instead of leaving the loop, so every lane of a vmap
performs the same MAX_ITERATIONS steps.

Usage:
    from mhdc2p.jax.cons2prim_jax import c2p_ideal_srmhd_jax
    cons_out, prim, dfloor_used, efloor_used, iterations = c2p_ideal_srmhd_jax(
        cons, bcc, gamma, dfloor, pfloor)
"""

import jax
import jax.numpy as jnp
from jax import jit, vmap, lax

from mhdc2p.root_finding import MAX_ITERATIONS, TOLERANCE

jax.config.update("jax_enable_x64", True)


# ============================================================================
# NON-RELATIVISTIC MHD
# ============================================================================

@jit
def c2p_ideal_mhd_jax(cons, bcc, gamma, dfloor, pfloor):
    """
    Args:
        cons: (5, N) conserved variables
        bcc: (3, N) cell-centred magnetic field

    Returns:
        tuple: (cons_out, prim, dfloor_used, efloor_used)
    """
    efloor = pfloor / (gamma - 1.0)

    dfloor_used = cons[0] < dfloor
    d = jnp.where(dfloor_used, dfloor, cons[0])

    di = 1.0 / d
    v = cons[1:4] * di

    e_k = 0.5 * di * jnp.sum(cons[1:4] ** 2, axis=0)
    e_m = 0.5 * jnp.sum(bcc ** 2, axis=0)
    e_int = cons[4] - e_k - e_m
    efloor_used = e_int < efloor
    e_int = jnp.where(efloor_used, efloor, e_int)
    e_tot = jnp.where(efloor_used, efloor + e_k + e_m, cons[4])

    cons_out = jnp.concatenate([d[None], cons[1:4], e_tot[None]], axis=0)
    prim = jnp.concatenate([d[None], v, e_int[None]], axis=0)
    return cons_out, prim, dfloor_used, efloor_used


@jit
def p2c_ideal_mhd_jax(prim, bcc):
    d = prim[0]
    v = prim[1:4]
    e_tot = prim[4] + 0.5 * (d * jnp.sum(v ** 2, axis=0) + jnp.sum(bcc ** 2, axis=0))
    return jnp.concatenate([d[None], d * v, e_tot[None]], axis=0)


# ============================================================================
# MASTER FUNCTIONS (Kastaun et al. 2021)
# ============================================================================

def _closure(mu, b2, rpar, r, q):
    x = 1.0 / (1.0 + mu * b2)                                       # (26)
    rbar = x * x * r * r + mu * x * (1.0 + x) * rpar * rpar         # (38)
    qbar = q - 0.5 * b2 - 0.5 * (mu * mu * (b2 * rbar - rpar * rpar))  # (31)
    z2 = mu * mu * rbar / jnp.abs(1.0 - mu * mu * rbar)             # (32)
    w = jnp.sqrt(1.0 + z2)
    return rbar, qbar, z2, w


def _bracket_function(mu, b2, rpar, r, q):
    x = 1.0 / (1.0 + mu * b2)
    rbar = x * x * r * r + mu * x * (1.0 + x) * rpar * rpar
    return mu * jnp.sqrt(1.0 + rbar) - 1.0


def _master_function(mu, b2, rpar, r, q, d, gamma, pfloor):
    rbar, qbar, z2, w = _closure(mu, b2, rpar, r, q)
    rho = d / w
    eps = w * (qbar - mu * rbar) + z2 / (w + 1.0)
    eps = jnp.maximum(pfloor / (rho * (gamma - 1.0)), eps)
    h = 1.0 + gamma * eps
    return mu - 1.0 / (h / w + rbar * mu)


def _illinois_false_position(f, zm, zp):
    """Fixed trip-count false position / Illinois; returns (z, iterations)."""
    zm = jnp.asarray(zm, dtype=jnp.float64)
    zp = jnp.asarray(zp, dtype=jnp.float64)
    fm = f(zm)
    fp = f(zp)
    skip = (jnp.abs(zm - zp) < TOLERANCE) | ((jnp.abs(fm) + jnp.abs(fp)) < 2.0 * TOLERANCE)

    def body(_, state):
        zm, zp, fm, fp, z, it, done = state
        z_new = (zm * fp - zp * fm) / (fp - fm)
        fz = f(z_new)
        converged = (jnp.abs(zm - zp) < TOLERANCE) | (jnp.abs(fz) < TOLERANCE)
        flip = fz * fp < 0.0

        active = ~done
        update = active & ~converged
        z = jnp.where(active, z_new, z)
        zm_next = jnp.where(flip, zp, zm)
        fm_next = jnp.where(flip, fp, 0.5 * fm)
        zm = jnp.where(update, zm_next, zm)
        fm = jnp.where(update, fm_next, fm)
        zp = jnp.where(update, z_new, zp)
        fp = jnp.where(update, fz, fp)
        it = it + jnp.where(update, 1, 0)
        done = done | (active & converged)
        return zm, zp, fm, fp, z, it, done

    init = (zm, zp, fm, fp, 0.5 * (zm + zp), jnp.int64(0), skip)
    state = lax.fori_loop(0, MAX_ITERATIONS, body, init)
    return state[4], state[5]


# ============================================================================
# SPECIAL-RELATIVISTIC MHD
# ============================================================================

def _p2c_srmhd_kernel(d, vx, vy, vz, e, bx, by, bz, gamma):
    u0 = jnp.sqrt(1.0 + vx * vx + vy * vy + vz * vz)
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


def _c2p_srmhd_kernel(d, mx, my, mz, e, bx, by, bz, gamma, dfloor, pfloor):
    """Single cell; see cons2prim.single_c2p_ideal_srmhd."""
    s2 = mx * mx + my * my + mz * mz
    b2 = bx * bx + by * by + bz * bz
    bdotm = bx * mx + by * my + bz * mz

    dfloor_used = d < dfloor
    d = jnp.where(dfloor_used, dfloor, d)
    e_min = pfloor / (gamma - 1.0) + 0.5 * b2
    efloor_used = e < e_min
    e = jnp.where(efloor_used, e_min, e)

    q = e / d
    r = jnp.sqrt(s2) / d
    isqrtd = 1.0 / jnp.sqrt(d)
    bxn = bx * isqrtd
    byn = by * isqrtd
    bzn = bz * isqrtd
    b2n = b2 / d
    rpar = bdotm / d * isqrtd

    z_upper, iter_bracket = _illinois_false_position(
        lambda mu: _bracket_function(mu, b2n, rpar, r, q), 0.0, 1.0)
    mu, iter_root = _illinois_false_position(
        lambda mu: _master_function(mu, b2n, rpar, r, q, d, gamma, pfloor), 0.0, z_upper)

    rbar, qbar, z2, lor = _closure(mu, b2n, rpar, r, q)
    w_d = d / lor
    eps = lor * (qbar - mu * rbar) + z2 / (lor + 1.0)
    epsmin = pfloor / (w_d * (gamma - 1.0))
    eps_floored = eps <= epsmin
    eps = jnp.where(eps_floored, epsmin, eps)
    efloor_used = efloor_used | eps_floored

    h = 1.0 + gamma * eps
    conv = lor / (h * lor + b2n)
    w_vx = conv * (mx / d + bxn * rpar / (h * lor))
    w_vy = conv * (my / d + byn * rpar / (h * lor))
    w_vz = conv * (mz / d + bzn * rpar / (h * lor))
    w_e = w_d * eps

    e_consistent = _p2c_srmhd_kernel(w_d, w_vx, w_vy, w_vz, w_e, bx, by, bz, gamma)[4]
    e = jnp.where(eps_floored, e_consistent, e)

    cons_out = jnp.stack([d, mx, my, mz, e])
    prim = jnp.stack([w_d, w_vx, w_vy, w_vz, w_e])
    return cons_out, prim, dfloor_used, efloor_used, jnp.maximum(iter_bracket, iter_root)


@jit
def c2p_ideal_srmhd_jax(cons, bcc, gamma, dfloor, pfloor):
    """
    Args:
        cons: (5, N) conserved variables (energy is E - D)
        bcc: (3, N) cell-centred magnetic field

    Returns:
        tuple: (cons_out, prim, dfloor_used, efloor_used, iterations)
    """
    kernel = vmap(
        lambda d, mx, my, mz, e, bx, by, bz: _c2p_srmhd_kernel(
            d, mx, my, mz, e, bx, by, bz, gamma, dfloor, pfloor)
    )
    cons_out, prim, dfloor_used, efloor_used, iterations = kernel(
        cons[0], cons[1], cons[2], cons[3], cons[4], bcc[0], bcc[1], bcc[2])
    # vmap stacks per-cell vectors along the first axis
    return cons_out.T, prim.T, dfloor_used, efloor_used, iterations


@jit
def p2c_ideal_srmhd_jax(prim, bcc, gamma):
    cons = _p2c_srmhd_kernel(prim[0], prim[1], prim[2], prim[3], prim[4],
                             bcc[0], bcc[1], bcc[2], gamma)
    return jnp.stack(cons)


# ============================================================================
# GENERAL-RELATIVISTIC MHD
# ============================================================================

@jit
def p2c_ideal_grmhd_jax(glower, gupper, prim, bcc, gamma):
    """
    Args:
        glower, gupper: (N, 4, 4) metric at the cell centres
        prim: (5, N) primitives, velocities are normal-frame ũ^i
        bcc: (3, N) cell-centred magnetic field
    """
    d, e = prim[0], prim[4]
    v = prim[1:4]
    g3 = glower[:, 1:, 1:]

    q = jnp.einsum('nij,in,jn->n', g3, v, v)
    alpha = jnp.sqrt(-1.0 / gupper[:, 0, 0])
    lor = jnp.sqrt(1.0 + q)
    u0 = lor / alpha
    ui = v - alpha * lor * gupper[:, 0, 1:].T
    u_U = jnp.concatenate([u0[None], ui], axis=0)
    u_L = jnp.einsum('nmk,kn->mn', glower, u_U)

    b0 = jnp.sum(u_L[1:] * bcc, axis=0)
    bi = (bcc + b0 * ui) / u0
    b_U = jnp.concatenate([b0[None], bi], axis=0)
    b_L = jnp.einsum('nmk,kn->mn', glower, b_U)
    b_sq = jnp.sum(b_U * b_L, axis=0)

    wtot = d + gamma * e + b_sq
    ptot = (gamma - 1.0) * e + 0.5 * b_sq
    u_d = d * u0
    u_e = wtot * u0 * u_L[0] - b0 * b_L[0] + ptot + u_d
    u_m = wtot * u0 * u_L[1:] - b0 * b_L[1:]
    return jnp.concatenate([u_d[None], u_m, u_e[None]], axis=0)
