# heterosim/solver/linear.py
"""
Block-tridiagonal linear algebra for 1D coupled systems.

A Jacobian over N nodes with S unknown slots per node is stored as three
(N, S, S) stacks: lower L[i] (row i, column i-1), diagonal D[i] and upper
U[i] (row i, column i+1). L[0] and U[N-1] are ignored.

No SciPy: the block Thomas algorithm does one dense (S, S) solve per node.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np

__all__ = ["BlockTridiagonal", "solve_block_tridiagonal", "scale_rows"]


@dataclass
class BlockTridiagonal:
    lower: np.ndarray   # (N, S, S)
    diag: np.ndarray    # (N, S, S)
    upper: np.ndarray   # (N, S, S)

    @classmethod
    def zeros(cls, N: int, S: int) -> "BlockTridiagonal":
        z = lambda: np.zeros((N, S, S), dtype=np.float64)  # noqa: E731
        return cls(lower=z(), diag=z(), upper=z())

    @property
    def shape(self) -> Tuple[int, int]:
        N, S, _ = self.diag.shape
        return N, S

    def matvec(self, x: np.ndarray) -> np.ndarray:
        """y = J x for x of shape (S, N)."""
        xt = x.T
        y = np.einsum("nij,nj->ni", self.diag, xt)
        y[1:] += np.einsum("nij,nj->ni", self.lower[1:], xt[:-1])
        y[:-1] += np.einsum("nij,nj->ni", self.upper[:-1], xt[1:])
        return y.T

    def to_dense(self) -> np.ndarray:
        """Dense matrix in slot-major ordering (row = s * N + i)."""
        N, S = self.shape
        A = np.zeros((S * N, S * N))
        idx = np.arange(N)
        for a in range(S):
            for b in range(S):
                A[a * N + idx, b * N + idx] = self.diag[:, a, b]
                A[a * N + idx[1:], b * N + idx[:-1]] = self.lower[1:, a, b]
                A[a * N + idx[:-1], b * N + idx[1:]] = self.upper[:-1, a, b]
        return A


def scale_rows(J: BlockTridiagonal, rhs: np.ndarray) -> None:
    """Equilibrate each (node, slot) row by its largest absolute entry, in place."""
    mag = np.maximum(np.abs(J.diag).max(axis=2), np.abs(J.lower).max(axis=2))
    mag = np.maximum(mag, np.abs(J.upper).max(axis=2))       # (N, S)
    mag[mag == 0.0] = 1.0
    inv = 1.0 / mag
    J.diag *= inv[:, :, None]
    J.lower *= inv[:, :, None]
    J.upper *= inv[:, :, None]
    rhs *= inv.T


def solve_block_tridiagonal(J: BlockTridiagonal, rhs: np.ndarray) -> np.ndarray:
    """
    Solve J x = rhs with rhs/x of shape (S, N).

    Raises numpy.linalg.LinAlgError on a singular pivot block.
    """
    N, S = J.shape
    d = rhs.T.copy()                     # (N, S)
    Cp = np.zeros((N, S, S))
    dp = np.zeros((N, S))

    M = J.diag[0]
    sol = np.linalg.solve(M, np.column_stack((J.upper[0], d[0])))
    Cp[0], dp[0] = sol[:, :S], sol[:, S]
    for i in range(1, N):
        M = J.diag[i] - J.lower[i] @ Cp[i - 1]
        r = d[i] - J.lower[i] @ dp[i - 1]
        sol = np.linalg.solve(M, np.column_stack((J.upper[i], r)))
        Cp[i], dp[i] = sol[:, :S], sol[:, S]

    x = np.zeros((N, S))
    x[-1] = dp[-1]
    for i in range(N - 2, -1, -1):
        x[i] = dp[i] - Cp[i] @ x[i + 1]
    if not np.all(np.isfinite(x)):
        raise np.linalg.LinAlgError("non-finite block-tridiagonal solution")
    return x.T
