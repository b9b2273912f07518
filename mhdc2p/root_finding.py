# root_finding.py
"""
Bounded false position (regula falsi) with the Illinois modification.

The iteration budget is a fixed constant rather than a convergence criterion
so that lock-step execution (SIMD lanes, GPU warps, vmap) pays at most
MAX_ITERATIONS evaluations per call. Non-convergence is never signalled: the
last interpolated point is returned after the budget is spent.
"""

from numba import jit

MAX_ITERATIONS = 25
TOLERANCE = 1.0e-12


@jit(nopython=True, error_model='numpy')
def illinois_false_position(f, params, zm, zp,
                            max_iterations=MAX_ITERATIONS, tol=TOLERANCE):
    """
    Find a root of f(z, params) inside [zm, zp].

    Args:
        f: JIT-compiled residual with signature f(z, params)
        params: Tuple of parameters forwarded to f
        zm, zp: Bracket end points
        max_iterations: Iteration cap
        tol: Early exit threshold on bracket width and |f|; both z and f are
            of order unity

    Returns:
        tuple: (z, iterations) - root estimate and the number of completed
        iterations (0 <= iterations <= max_iterations)
    """
    fm = f(zm, params)
    fp = f(zp, params)

    iterations = max_iterations
    # bracket already within tolerance: skip the iteration altogether
    if abs(zm - zp) < tol or (abs(fm) + abs(fp)) < 2.0 * tol:
        iterations = 0
    z = 0.5 * (zm + zp)

    it = 0
    while it < iterations:
        z = (zm * fp - zp * fm) / (fp - fm)  # linear interpolation to f(z) = 0
        fz = f(z, params)
        if abs(zm - zp) < tol or abs(fz) < tol:
            break
        if fz * fp < 0.0:
            # root bracketed by [z, zp]
            zm = zp
            fm = fp
        else:
            # root bracketed by [zm, z]; Illinois halving of the stale end
            fm = 0.5 * fm
        zp = z
        fp = fz
        it += 1

    return z, it
