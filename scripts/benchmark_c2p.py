"""Benchmark cons -> prim throughput: Numba vs JAX for different pack sizes."""
import argparse
import time

import numpy as np

from mhdc2p.backend import Backend
from mhdc2p.converter import IdealMHDConverter
from mhdc2p.eos import EOSParams


def make_pack(n, seed=0):
    rng = np.random.default_rng(seed)
    prim = np.empty((5, n))
    prim[0] = rng.uniform(0.1, 2.0, n)
    prim[1:4] = rng.uniform(-0.8, 0.8, (3, n))
    prim[4] = rng.uniform(0.05, 2.0, n)
    bcc = rng.uniform(-1.0, 1.0, (3, n))
    return prim, bcc


def time_backend(backend, relativity, sizes, n_runs, n_warmup=3):
    eos = EOSParams(gamma=5.0 / 3.0)
    conv = IdealMHDConverter(eos, relativity, backend=backend)
    results = []
    for N in sizes:
        prim, bcc = make_pack(N)
        cons = conv.prim_to_cons(prim, bcc)

        # Warmup (compilation)
        for _ in range(n_warmup):
            conv.cons_to_prim(cons, bcc)

        times = []
        for _ in range(n_runs):
            t0 = time.perf_counter()
            conv.cons_to_prim(cons, bcc)
            t1 = time.perf_counter()
            times.append(t1 - t0)

        results.append({'N': N, 'mean': np.mean(times), 'std': np.std(times),
                        'max_iter': conv.get_statistics()['max_iterations']})
        print(f"  N = {N:<9d} {np.mean(times)*1000:9.3f} ± {np.std(times)*1000:.3f} ms")
    return results


def main():
    parser = argparse.ArgumentParser(description="Benchmark conserved -> primitive conversion.")
    parser.add_argument('--relativity', choices=['none', 'special'], default='special')
    parser.add_argument('--sizes', type=int, nargs='+', default=[1000, 10000, 100000])
    parser.add_argument('--runs', type=int, default=20)
    parser.add_argument('--jax', action='store_true', help="also time the JAX backend")
    args = parser.parse_args()

    print("=" * 70)
    print(f"CONS2PRIM BENCHMARK ({args.relativity})")
    print("=" * 70)

    print("\nNUMBA")
    numba_results = time_backend(Backend.NUMBA, args.relativity, args.sizes, args.runs)

    if args.jax:
        print("\nJAX")
        jax_results = time_backend(Backend.JAX_CPU, args.relativity, args.sizes, args.runs)

        print(f"\n  {'N':<10} {'Speedup':<10}")
        print(f"  {'-'*20}")
        for r_numba, r_jax in zip(numba_results, jax_results):
            print(f"  {r_numba['N']:<10} {r_numba['mean'] / r_jax['mean']:<10.2f}")

    print(f"\n  max iterations: {numba_results[-1]['max_iter']}")


if __name__ == '__main__':
    main()
