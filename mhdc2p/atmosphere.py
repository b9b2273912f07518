# atmosphere.py
"""
Floor policy shared by all converters.

Floors are applied by clamping, never by rejecting the state. Every function
returns the corrected value(s) together with a boolean telling whether the
floor was active, so callers can accumulate diagnostics without side effects.

Floors used here:
    - density:                  d   >= dfloor
    - internal energy (NR):     e   >= pfloor / (Γ - 1)
    - total energy (SR):        τ   >= pfloor / (Γ - 1) + |B|²/2
    - specific energy (SR):     ε   >= pfloor / (ρ (Γ - 1))
"""

from numba import jit


@jit(nopython=True, cache=True, error_model='numpy')
def apply_density_floor(d, dfloor):
    """
    Clamp the density to the floor.

    Returns
    -------
    d, used : float, bool
    """
    if d < dfloor:
        return dfloor, True
    return d, False


@jit(nopython=True, cache=True, error_model='numpy')
def apply_internal_energy_floor(e_total, e_k, e_m, efloor):
    """
    Derive the internal energy density from the total energy and clamp it.

    When the floor is active the total energy is rebuilt as
    efloor + e_k + e_m, so the conserved energy stays consistent with the
    floored primitive state. Otherwise e_total is returned untouched.

    Returns
    -------
    e_int, e_total, used : float, float, bool
    """
    e_int = e_total - e_k - e_m
    if e_int < efloor:
        return efloor, efloor + e_k + e_m, True
    return e_int, e_total, False


@jit(nopython=True, cache=True, error_model='numpy')
def apply_total_energy_floor(e, b2, gamma, pfloor):
    """
    Combined relativistic energy floor accounting for magnetic energy.

    Args:
        e: Conserved energy (E - D)
        b2: |B|² (not normalised by density)
    """
    e_min = pfloor / (gamma - 1.0) + 0.5 * b2
    if e < e_min:
        return e_min, True
    return e, False


@jit(nopython=True, cache=True, error_model='numpy')
def specific_energy_floor(d, gamma, pfloor):
    """ε floor implied by pfloor at rest density d."""
    return pfloor / (d * (gamma - 1.0))
