"""
Backend dispatcher for mhdc2p.

Selects between Numba (CPU, prange) and JAX (CPU/GPU, vmap) pack kernels via
environment variable.

Usage:
    # Default: Numba backend
    python simulation.py

    # JAX backend (auto-detect GPU)
    MHDC2P_BACKEND=jax python simulation.py

    # Force specific backend
    MHDC2P_BACKEND=numba python simulation.py
    MHDC2P_BACKEND=jax-cpu python simulation.py
    MHDC2P_BACKEND=jax-gpu python simulation.py
"""

import logging
import os
from enum import Enum
from functools import lru_cache
from typing import Optional

logger = logging.getLogger(__name__)

ENV_VAR = 'MHDC2P_BACKEND'


class Backend(Enum):
    NUMBA = "numba"
    JAX_CPU = "jax-cpu"
    JAX_GPU = "jax-gpu"


def _init_jax(platform: Optional[str] = None):
    """
    Import JAX with 64-bit floats enabled and return its device list: None
    if JAX is not installed, empty if the requested platform is unavailable.

    Args:
        platform: 'cpu' pins JAX to the host; 'gpu' lists only GPU devices
    """
    try:
        import jax
    except ImportError:
        logger.warning("JAX not installed, falling back to Numba")
        return None
    jax.config.update("jax_enable_x64", True)
    if platform == 'cpu':
        jax.config.update('jax_platform_name', 'cpu')
    try:
        return jax.devices(platform) if platform == 'gpu' else jax.devices()
    except RuntimeError as e:
        logger.warning("JAX initialization failed (%s)", e)
        return []


def resolve_backend(name: Optional[str] = None) -> Backend:
    """
    Map a backend name to a Backend, falling back to Numba whenever JAX is
    missing or cannot initialise.

    Args:
        name: 'numba', 'jax', 'jax-auto', 'jax-cpu' or 'jax-gpu'. None reads
            the MHDC2P_BACKEND environment variable.
    """
    if name is None:
        name = os.environ.get(ENV_VAR, 'numba')
    backend = name.lower()

    if backend == 'numba':
        return Backend.NUMBA

    if backend == 'jax-cpu':
        if not _init_jax('cpu'):
            return Backend.NUMBA
        logger.info("JAX backend: CPU mode (forced)")
        return Backend.JAX_CPU

    if backend in ('jax', 'jax-auto', 'jax-gpu'):
        devices = _init_jax('gpu' if backend == 'jax-gpu' else None)
        if devices is None:
            return Backend.NUMBA
        if backend == 'jax-gpu' and not devices:
            logger.warning("No GPU available, falling back to JAX CPU")
            return Backend.JAX_CPU
        if not devices:
            return Backend.NUMBA
        gpus = [d for d in devices if d.platform == 'gpu']
        if gpus:
            logger.info("JAX backend: GPU mode (%s)", gpus[0])
            return Backend.JAX_GPU
        logger.info("JAX backend: CPU mode (no GPU detected)")
        return Backend.JAX_CPU

    logger.warning("Unknown backend '%s', using Numba", backend)
    return Backend.NUMBA


@lru_cache(maxsize=1)
def get_backend() -> Backend:
    """Process-wide backend chosen from the environment (cached)."""
    return resolve_backend()


def is_jax_backend(backend: Optional[Backend] = None) -> bool:
    """Check if using any JAX backend."""
    if backend is None:
        backend = get_backend()
    return backend in (Backend.JAX_CPU, Backend.JAX_GPU)
