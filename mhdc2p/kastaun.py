# kastaun.py
"""
Master functions for relativistic MHD primitive recovery.

Kastaun, Kalinani & Ciolfi, Phys. Rev. D 103, 023018 (2021).

Both functions depend on a single auxiliary variable μ = 1/(h W) and on the
density-normalised invariants of the conserved state:

    q    = τ / D                   normalised energy
    r    = |S| / D                 normalised momentum
    b2   = |B|² / D                magnetisation
    rpar = (S·B) / D^{3/2}         momentum parallel to the field

The ideal-gas closure h = 1 + Γ ε is the only one implemented; any other
EOS enters through the enthalpy relation in `master_function`.
"""

import math

from numba import jit


@jit(nopython=True, cache=True, error_model='numpy')
def primitive_closure(mu, b2, rpar, r, q):
    """
    Quantities shared by the master function and the final primitive recovery.

    Returns
    -------
    rbar, qbar, z2, w : float
        Combined momentum term (eq. 38), reduced energy (eq. 31),
        squared 4-velocity (eq. 32) and Lorentz factor.
    """
    x = 1.0 / (1.0 + mu * b2)                                       # (26)
    rbar = x * x * r * r + mu * x * (1.0 + x) * rpar * rpar         # (38)
    qbar = q - 0.5 * b2 - 0.5 * (mu * mu * (b2 * rbar - rpar * rpar))  # (31)
    z2 = mu * mu * rbar / abs(1.0 - mu * mu * rbar)                 # (32)
    w = math.sqrt(1.0 + z2)
    return rbar, qbar, z2, w


@jit(nopython=True, cache=True, error_model='numpy')
def specific_internal_energy(qbar, mu, rbar, z2, w):
    """ε from the closure variables (eq. 40), before flooring."""
    return w * (qbar - mu * rbar) + z2 / (w + 1.0)


@jit(nopython=True, cache=True, error_model='numpy')
def bracket_function(mu, b2, rpar, r, q):
    """
    f_a(μ) of eq. 49. f_a(0) = -1 and f_a(1) >= 0, so its root in [0, 1] is
    an upper bound for the physical root of `master_function`.
    """
    x = 1.0 / (1.0 + mu * b2)                                       # (26)
    rbar = x * x * r * r + mu * x * (1.0 + x) * rpar * rpar         # (38)
    return mu * math.sqrt(1.0 + rbar) - 1.0


@jit(nopython=True, cache=True, error_model='numpy')
def master_function(mu, b2, rpar, r, q, d, gamma, pfloor):
    """
    f(μ) of eq. 44; its root is the physical value of μ.

    The specific energy is floored at the rest density implied by μ while the
    function is being evaluated, not only once the root is found.
    """
    rbar, qbar, z2, w = primitive_closure(mu, b2, rpar, r, q)

    rho = d / w                                                     # (34)
    eps = specific_internal_energy(qbar, mu, rbar, z2, w)
    eps = max(pfloor / (rho * (gamma - 1.0)), eps)

    h = 1.0 + gamma * eps                                           # (43)
    return mu - 1.0 / (h / w + rbar * mu)                           # (45)


# Fixed-signature residuals for the root finder: f(mu, params)

@jit(nopython=True, cache=True, error_model='numpy')
def bracket_residual(mu, params):
    """params = (b2, rpar, r, q)"""
    return bracket_function(mu, params[0], params[1], params[2], params[3])


@jit(nopython=True, cache=True, error_model='numpy')
def master_residual(mu, params):
    """params = (b2, rpar, r, q, d, gamma, pfloor)"""
    return master_function(mu, params[0], params[1], params[2], params[3],
                           params[4], params[5], params[6])
