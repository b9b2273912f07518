"""
Non-relativistic ideal MHD: closed-form conversions.
"""

import numpy as np
import pytest

from mhdc2p.converter import IdealMHDConverter, cons_to_prim, prim_to_cons
from mhdc2p.eos import EOSParams
from mhdc2p.state import ConservedState, MagneticField, PrimitiveState


@pytest.fixture
def converter():
    return IdealMHDConverter(EOSParams(gamma=5.0 / 3.0), relativity="none", backend="numba")


def random_primitives(n, seed=1234):
    rng = np.random.default_rng(seed)
    prim = np.empty((5, n))
    prim[0] = rng.uniform(0.1, 2.0, n)
    prim[1:4] = rng.uniform(-1.0, 1.0, (3, n))
    prim[4] = rng.uniform(0.01, 5.0, n)
    bcc = rng.uniform(-1.0, 1.0, (3, n))
    return prim, bcc


class TestPrimToCons:
    def test_single_cell(self):
        w = PrimitiveState(d=2.0, vx=0.5, vy=-1.0, vz=0.0, e=3.0)
        b = MagneticField(1.0, 0.0, 2.0)
        u = prim_to_cons(w, b)
        assert u.d == 2.0
        assert (u.mx, u.my, u.mz) == (1.0, -2.0, 0.0)
        # e + ½ρv² + ½B² = 3 + 1.25 + 2.5
        assert u.e == pytest.approx(6.75)
        assert (u.bx, u.by, u.bz) == (1.0, 0.0, 2.0)

    def test_pack_matches_single_cell(self, converter):
        prim, bcc = random_primitives(16)
        cons = converter.prim_to_cons(prim, bcc)
        for i in range(prim.shape[1]):
            u = prim_to_cons(PrimitiveState(*prim[:, i]), MagneticField(*bcc[:, i]))
            np.testing.assert_allclose(cons[:, i], u[:5], rtol=1e-15)


class TestConsToPrim:
    def test_round_trip(self, converter):
        prim, bcc = random_primitives(200)
        cons = converter.prim_to_cons(prim, bcc)
        result = converter.cons_to_prim(cons, bcc)

        np.testing.assert_allclose(result.prim, prim, rtol=1e-12, atol=1e-14)
        np.testing.assert_array_equal(result.cons, cons)
        assert not result.diagnostics.dfloor_used
        assert not result.diagnostics.efloor_used
        assert result.diagnostics.max_iter == 0

    def test_single_cell_round_trip(self):
        eos = EOSParams()
        w = PrimitiveState(1.0, 0.1, -0.2, 0.3, 1.5)
        b = MagneticField(0.5, 1.0, 0.0)
        result = cons_to_prim(prim_to_cons(w, b), eos)
        np.testing.assert_allclose(result.prim, w, rtol=1e-14)
        assert result.diagnostics.max_iter == 0

    def test_momentum_untouched_by_density_floor(self, converter):
        cons = np.array([[-1.0], [1e-9], [0.0], [0.0], [1.0]])
        result = converter.cons_to_prim(cons)
        assert result.diagnostics.dfloor_used
        assert result.cons[1, 0] == 1e-9
        assert result.prim[1, 0] == pytest.approx(1e-9 / converter.eos.dfloor)

    def test_preserves_trailing_shape(self, converter):
        prim, bcc = random_primitives(24)
        prim = prim.reshape(5, 4, 6)
        bcc = bcc.reshape(3, 4, 6)
        cons = converter.prim_to_cons(prim, bcc)
        assert cons.shape == (5, 4, 6)
        result = converter.cons_to_prim(cons, bcc)
        assert result.prim.shape == (5, 4, 6)
        np.testing.assert_allclose(result.prim, prim, rtol=1e-12)
