# mhdc2p/__init__.py

"""
Conserved <-> primitive variable conversion for ideal-gas MHD.

Non-relativistic (closed form), special-relativistic (Kastaun master-function
root find) and general-relativistic (primitive -> conserved only) kernels,
with density and pressure floors. Kept lightweight: the Numba kernels are only
compiled when first requested.
"""

from importlib import import_module

__all__ = [
    'EOSParams',
    'ConservedState',
    'PrimitiveState',
    'MagneticField',
    'C2PDiagnostics',
    'C2PResult',
    'SpacetimeMetric',
    'IdealMHDConverter',
    'create_converter',
    'cons_to_prim',
    'prim_to_cons',
    'Backend',
    'get_backend',
]

_EXPORTS = {
    'EOSParams': '.eos',
    'ConservedState': '.state',
    'PrimitiveState': '.state',
    'MagneticField': '.state',
    'C2PDiagnostics': '.state',
    'C2PResult': '.state',
    'SpacetimeMetric': '.metric',
    'IdealMHDConverter': '.converter',
    'create_converter': '.converter',
    'cons_to_prim': '.converter',
    'prim_to_cons': '.converter',
    'Backend': '.backend',
    'get_backend': '.backend',
}


# -------- Lazy attribute loading (PEP 562) --------
def __getattr__(name):
    if name in _EXPORTS:
        return getattr(import_module(_EXPORTS[name], __name__), name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
