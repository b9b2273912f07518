# metric.py
"""Spacetime metric container for the general-relativistic conversions.
"""

from dataclasses import dataclass

import numpy as np

SPACEDIM = 3


@dataclass
class SpacetimeMetric:
    """
    Lower- and upper-index 4-metric at N cell centres.

    Attributes:
        glower: (N, 4, 4) covariant metric g_μν
        gupper: (N, 4, 4) contravariant metric g^μν
    """
    glower: np.ndarray
    gupper: np.ndarray

    def __post_init__(self):
        self.glower = np.ascontiguousarray(self.glower, dtype=np.float64)
        self.gupper = np.ascontiguousarray(self.gupper, dtype=np.float64)
        if self.glower.ndim == 2:
            self.glower = self.glower[np.newaxis]
        if self.gupper.ndim == 2:
            self.gupper = self.gupper[np.newaxis]
        if self.glower.shape != self.gupper.shape or self.glower.shape[1:] != (4, 4):
            raise ValueError(f"metric components must have shape (N, 4, 4), got "
                             f"{self.glower.shape} and {self.gupper.shape}")

    def __len__(self) -> int:
        return self.glower.shape[0]

    @property
    def alpha(self) -> np.ndarray:
        """Lapse α = sqrt(-1/g^00)."""
        return np.sqrt(-1.0 / self.gupper[:, 0, 0])

    def broadcast_to(self, n: int) -> "SpacetimeMetric":
        """Repeat a single-point metric over n cells."""
        if len(self) == n:
            return self
        if len(self) != 1:
            raise ValueError(f"cannot broadcast metric of length {len(self)} to {n} cells")
        return SpacetimeMetric(
            glower=np.broadcast_to(self.glower, (n, 4, 4)),
            gupper=np.broadcast_to(self.gupper, (n, 4, 4)),
        )

    def at_indices(self, indices: np.ndarray) -> "SpacetimeMetric":
        return SpacetimeMetric(glower=self.glower[indices], gupper=self.gupper[indices])

    # --- Factories ---

    @classmethod
    def minkowski(cls, N: int = 1) -> "SpacetimeMetric":
        """Flat spacetime, signature (-, +, +, +)."""
        eta = np.diag([-1.0, 1.0, 1.0, 1.0])
        g = np.broadcast_to(eta, (N, 4, 4)).copy()
        return cls(glower=g, gupper=g.copy())

    @classmethod
    def from_adm(cls, alpha, beta_U, gamma_LL) -> "SpacetimeMetric":
        """
        Assemble the 4-metric from 3+1 variables.

            g_00 = -α² + β_k β^k     g^00 = -1/α²
            g_0i = β_i               g^0i = β^i/α²
            g_ij = γ_ij              g^ij = γ^ij - β^i β^j/α²

        Args:
            alpha: (N,) lapse
            beta_U: (N, 3) shift vector
            gamma_LL: (N, 3, 3) spatial metric
        """
        alpha = np.atleast_1d(np.asarray(alpha, dtype=float))
        N = alpha.shape[0]
        beta_U = np.broadcast_to(np.asarray(beta_U, dtype=float), (N, SPACEDIM))
        gamma_LL = np.broadcast_to(np.asarray(gamma_LL, dtype=float), (N, SPACEDIM, SPACEDIM))
        gamma_UU = np.linalg.inv(gamma_LL)

        beta_L = np.einsum('nij,nj->ni', gamma_LL, beta_U)
        beta_sq = np.einsum('ni,ni->n', beta_L, beta_U)
        alpha_sq = alpha * alpha

        glower = np.empty((N, 4, 4))
        glower[:, 0, 0] = -alpha_sq + beta_sq
        glower[:, 0, 1:] = beta_L
        glower[:, 1:, 0] = beta_L
        glower[:, 1:, 1:] = gamma_LL

        gupper = np.empty((N, 4, 4))
        gupper[:, 0, 0] = -1.0 / alpha_sq
        gupper[:, 0, 1:] = beta_U / alpha_sq[:, None]
        gupper[:, 1:, 0] = beta_U / alpha_sq[:, None]
        gupper[:, 1:, 1:] = gamma_UU - np.einsum('ni,nj->nij', beta_U, beta_U) / alpha_sq[:, None, None]

        return cls(glower=glower, gupper=gupper)

    @classmethod
    def kerr_schild(cls, x, y, z, spin: float = 0.0, mass: float = 1.0) -> "SpacetimeMetric":
        """
        Cartesian Kerr-Schild metric g_μν = η_μν + 2 H l_μ l_ν of a black hole
        with dimensionless spin a (in units of the mass).

            r⁴ - (R² - a²) r² - a² z² = 0
            H   = M r³ / (r⁴ + a² z²)
            l_μ = (1, (r x + a y)/(r² + a²), (r y - a x)/(r² + a²), z/r)

        Coordinates must lie outside the ring singularity.
        """
        x = np.atleast_1d(np.asarray(x, dtype=float))
        y = np.broadcast_to(np.asarray(y, dtype=float), x.shape)
        z = np.broadcast_to(np.asarray(z, dtype=float), x.shape)
        a = spin * mass

        R2 = x * x + y * y + z * z
        a2 = a * a
        r = np.sqrt(0.5 * (R2 - a2 + np.sqrt((R2 - a2) ** 2 + 4.0 * a2 * z * z)))
        H = mass * r ** 3 / (r ** 4 + a2 * z * z)

        N = x.shape[0]
        l_L = np.empty((N, 4))
        l_L[:, 0] = 1.0
        l_L[:, 1] = (r * x + a * y) / (r * r + a2)
        l_L[:, 2] = (r * y - a * x) / (r * r + a2)
        l_L[:, 3] = z / r

        # raise with η: l^μ = (-1, l_x, l_y, l_z)
        l_U = l_L.copy()
        l_U[:, 0] = -1.0

        eta = np.diag([-1.0, 1.0, 1.0, 1.0])
        glower = eta[None] + 2.0 * H[:, None, None] * np.einsum('ni,nj->nij', l_L, l_L)
        gupper = eta[None] - 2.0 * H[:, None, None] * np.einsum('ni,nj->nij', l_U, l_U)
        return cls(glower=glower, gupper=gupper)
