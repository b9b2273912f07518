"""
JAX backend for mhdc2p.

JAX-native versions of the pack kernels, for GPU execution and for embedding
the conversions inside larger jit-compiled programs.

Modules:
    cons2prim_jax: NR and SR conserved -> primitive, NR/SR/GR primitive -> conserved
"""
