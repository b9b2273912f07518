"""
General-relativistic prim -> cons and the spacetime metric container.
"""

import numpy as np
import pytest

from mhdc2p.converter import IdealMHDConverter, prim_to_cons
from mhdc2p.eos import EOSParams
from mhdc2p.metric import SpacetimeMetric
from mhdc2p.state import MagneticField, PrimitiveState


@pytest.fixture
def eos():
    return EOSParams(gamma=4.0 / 3.0)


def random_primitives(n, seed=5):
    rng = np.random.default_rng(seed)
    prim = np.empty((5, n))
    prim[0] = rng.uniform(0.1, 2.0, n)
    prim[1:4] = rng.uniform(-0.8, 0.8, (3, n))
    prim[4] = rng.uniform(0.05, 2.0, n)
    bcc = rng.uniform(-1.0, 1.0, (3, n))
    return prim, bcc


class TestMetric:
    def test_minkowski(self):
        metric = SpacetimeMetric.minkowski(3)
        assert len(metric) == 3
        np.testing.assert_array_equal(metric.glower[1], np.diag([-1.0, 1.0, 1.0, 1.0]))
        np.testing.assert_array_equal(metric.alpha, np.ones(3))

    def test_kerr_schild_inverse(self):
        x = np.array([3.0, 4.0, -2.0, 10.0])
        y = np.array([4.0, 5.0, -2.0, 0.5])
        z = np.array([2.0, 1.0, 6.0, -3.0])
        metric = SpacetimeMetric.kerr_schild(x, y, z, spin=0.6)
        identity = np.einsum('nij,njk->nik', metric.glower, metric.gupper)
        np.testing.assert_allclose(identity, np.broadcast_to(np.eye(4), identity.shape),
                                   atol=1e-13)

    def test_kerr_schild_far_field_is_flat(self):
        metric = SpacetimeMetric.kerr_schild(1e8, 0.0, 0.0, spin=0.9)
        np.testing.assert_allclose(metric.glower[0], np.diag([-1.0, 1.0, 1.0, 1.0]), atol=1e-7)

    def test_from_adm(self):
        gamma_LL = np.diag([1.0, 2.0, 3.0])
        metric = SpacetimeMetric.from_adm(2.0, [0.1, 0.0, -0.2], gamma_LL)
        identity = metric.glower[0] @ metric.gupper[0]
        np.testing.assert_allclose(identity, np.eye(4), atol=1e-14)
        np.testing.assert_allclose(metric.alpha, [2.0])
        np.testing.assert_allclose(metric.glower[0, 1:, 1:], gamma_LL)

    def test_broadcast_single_point(self):
        metric = SpacetimeMetric.minkowski().broadcast_to(5)
        assert metric.glower.shape == (5, 4, 4)

    def test_broadcast_rejects_mismatch(self):
        with pytest.raises(ValueError):
            SpacetimeMetric.minkowski(2).broadcast_to(5)

    def test_rejects_bad_shape(self):
        with pytest.raises(ValueError):
            SpacetimeMetric(glower=np.zeros((2, 3, 3)), gupper=np.zeros((2, 3, 3)))


class TestGRPrimToCons:
    def test_minkowski_matches_special_relativity(self, eos):
        prim, bcc = random_primitives(64)
        sr = IdealMHDConverter(eos, "special", backend="numba").prim_to_cons(prim, bcc)
        gr = IdealMHDConverter(eos, "general", backend="numba").prim_to_cons(
            prim, bcc, metric=SpacetimeMetric.minkowski())

        np.testing.assert_allclose(gr[:4], sr[:4], rtol=1e-13, atol=1e-13)
        # energy is T^t_t + D in GR and E - D in SR
        np.testing.assert_allclose(gr[4], -sr[4], rtol=1e-13, atol=1e-13)

    def test_lapse_scales_density(self, eos):
        metric = SpacetimeMetric.from_adm(2.0, np.zeros(3), np.eye(3))
        w = PrimitiveState(1.0, 0.3, 0.0, 0.0, 1.0)
        u = prim_to_cons(w, MagneticField(), eos, relativity="general", metric=metric)
        # D = ρ u^0 with u^0 = W / α
        assert u.d == pytest.approx(np.sqrt(1.09) / 2.0)

    def test_requires_metric(self, eos):
        conv = IdealMHDConverter(eos, "general", backend="numba")
        prim, bcc = random_primitives(4)
        with pytest.raises(ValueError):
            conv.prim_to_cons(prim, bcc)

    def test_cons_to_prim_not_available(self, eos):
        conv = IdealMHDConverter(eos, "general", backend="numba")
        with pytest.raises(NotImplementedError):
            conv.cons_to_prim(np.ones((5, 2)), np.zeros((3, 2)))

    def test_kerr_schild_pack_matches_single_cell(self, eos):
        prim, bcc = random_primitives(6, seed=9)
        metric = SpacetimeMetric.kerr_schild(np.linspace(3.0, 8.0, 6), 1.0, 2.0, spin=0.5)
        cons = IdealMHDConverter(eos, "general", backend="numba").prim_to_cons(
            prim, bcc, metric=metric)
        for i in range(6):
            u = prim_to_cons(PrimitiveState(*prim[:, i]), MagneticField(*bcc[:, i]), eos,
                             relativity="general", metric=metric.at_indices([i]))
            np.testing.assert_allclose(cons[:, i], u[:5], rtol=1e-13)
