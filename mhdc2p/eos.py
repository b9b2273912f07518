# eos.py
"""
Ideal-gas equation of state parameters shared by every conversion kernel.

    P   = (Γ - 1) e
    ε   = e / ρ
    h   = 1 + Γ ε
"""

import numpy as np
from dataclasses import dataclass
from typing import Any, Mapping


@dataclass(frozen=True)
class EOSParams:
    """
    Immutable per-run EOS configuration.

    Attributes
    ----------
    gamma : float
        Adiabatic index Γ (> 1).
    dfloor : float
        Density floor (> 0).
    pfloor : float
        Pressure floor (>= 0).

    Create once at configuration time and hand the same instance to every
    converter; the kernels only ever read these values.

        eos = EOSParams(gamma=5.0/3.0, dfloor=1e-8, pfloor=1e-10)
    """

    gamma: float = 5.0 / 3.0
    dfloor: float = 1.0e-8
    pfloor: float = 1.0e-10

    def __post_init__(self):
        """Validate parameters."""
        if not self.gamma > 1.0:
            raise ValueError(f"gamma must be > 1, got {self.gamma}")
        if not self.dfloor > 0.0:
            raise ValueError(f"dfloor must be positive, got {self.dfloor}")
        if not self.pfloor >= 0.0:
            raise ValueError(f"pfloor must be non-negative, got {self.pfloor}")
        # normalise ints coming from parameter files
        object.__setattr__(self, "gamma", float(self.gamma))
        object.__setattr__(self, "dfloor", float(self.dfloor))
        object.__setattr__(self, "pfloor", float(self.pfloor))

    @classmethod
    def from_dict(cls, params: Mapping[str, Any]) -> "EOSParams":
        """
        Build from a flat parameter mapping, e.g. the ``<hydro>`` block of an
        input file. Missing keys fall back to the defaults.
        """
        defaults = cls()
        return cls(
            gamma=float(params.get("gamma", defaults.gamma)),
            dfloor=float(params.get("dfloor", defaults.dfloor)),
            pfloor=float(params.get("pfloor", defaults.pfloor)),
        )

    @property
    def gamma_minus_1(self) -> float:
        return self.gamma - 1.0

    @property
    def efloor(self) -> float:
        """Internal energy density implied by the pressure floor."""
        return self.pfloor / self.gamma_minus_1

    def as_tuple(self):
        """(gamma, dfloor, pfloor), the argument order of the JIT kernels."""
        return self.gamma, self.dfloor, self.pfloor

    # --- Thermodynamics ---

    def pressure(self, e_int):
        """P = (Γ - 1) e"""
        return self.gamma_minus_1 * e_int

    def sound_speed(self, e_int, d):
        """Adiabatic sound speed of a non-relativistic gas, sqrt(Γ P / ρ)."""
        return np.sqrt(self.gamma * self.pressure(e_int) / d)

    def sound_speed_sr(self, e_int, d):
        """
        Relativistic sound speed sqrt(Γ P / (ρ h)) with ρ h = ρ + Γ e.
        Always below 1 for Γ <= 2.
        """
        return np.sqrt(self.gamma * self.pressure(e_int) / (d + self.gamma * e_int))


# Common presets used in tests and examples
COMMON_EOS = {
    "monatomic": EOSParams(gamma=5.0 / 3.0),
    "radiation": EOSParams(gamma=4.0 / 3.0),
    "stiff": EOSParams(gamma=2.0),
}


def get_common_eos(name: str) -> EOSParams:
    """Retrieve a predefined EOS configuration by name."""
    if name not in COMMON_EOS:
        raise ValueError(f"Unknown EOS name '{name}'. Available: {list(COMMON_EOS.keys())}")
    return COMMON_EOS[name]
