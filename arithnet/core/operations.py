"""
Primitive binary operations - the only arithmetic a neuron can perform.

The live family is ordered and its indices are part of the model file
format:

- 0 add:  a + b
- 1 sub:  a - b
- 2 rsub: b - a
- 3 mul:  a * b

Every operation has two kernels. The vectorized kernel is a numpy ufunc,
whose inner loops run SIMD lanes with scalar tails. The scalar kernel walks
the buffers one float32 at a time and is the reference the vectorized
kernel must match bit for bit.
"""

import numpy as np
from typing import Callable, Dict, List, Optional


def add(a, b):
    return a + b


def sub(a, b):
    return a - b


def rsub(a, b):
    """Reverse subtraction."""
    return b - a


def mul(a, b):
    return a * b


class Operation:
    """A binary float32 operation with vectorized and scalar kernels."""

    def __init__(
        self,
        name: str,
        index: int,
        symbol: str,
        scalar_fn: Callable,
        ufunc: np.ufunc,
        swap: bool = False,
        commutative: bool = False,
    ):
        self.name = name
        self.index = index
        self.symbol = symbol
        self.scalar_fn = scalar_fn
        self.ufunc = ufunc
        self.swap = swap
        self.commutative = commutative

    def apply(
        self,
        a: np.ndarray,
        b: np.ndarray,
        out: Optional[np.ndarray] = None,
        vectorized: bool = True,
    ) -> np.ndarray:
        """
        Apply elementwise to two broadcast-compatible float32 arrays.

        Args:
            a: Left operand
            b: Right operand
            out: Optional destination, may alias a or b
            vectorized: Use the ufunc kernel (False forces the scalar loop)

        Returns:
            float32 array holding f(a, b)
        """
        if vectorized:
            x, y = (b, a) if self.swap else (a, b)
            with np.errstate(all='ignore'):
                if out is None:
                    return self.ufunc(x, y, dtype=np.float32)
                return self.ufunc(x, y, out=out, dtype=np.float32)
        return self._apply_scalar(a, b, out)

    def _apply_scalar(self, a, b, out=None) -> np.ndarray:
        a_arr, b_arr = np.broadcast_arrays(
            np.asarray(a, dtype=np.float32), np.asarray(b, dtype=np.float32)
        )
        flat_a = a_arr.ravel()
        flat_b = b_arr.ravel()
        result = np.empty(a_arr.shape, dtype=np.float32)
        flat_out = result.reshape(-1)
        fn = self.scalar_fn
        with np.errstate(all='ignore'):
            for k in range(flat_out.size):
                flat_out[k] = fn(flat_a[k], flat_b[k])
        if out is None:
            return result
        out[...] = result
        return out

    def scalar(self, a: np.float32, b: np.float32) -> np.float32:
        """Apply to a single pair of values (single-element buffers)."""
        with np.errstate(all='ignore'):
            return np.float32(self.scalar_fn(np.float32(a), np.float32(b)))

    def __call__(self, dst: np.ndarray, a: np.ndarray, b: np.ndarray,
                 n: Optional[int] = None, vectorized: bool = True) -> None:
        """Kernel form: write f(a[k], b[k]) into dst[k] for k < n."""
        n = len(dst) if n is None else n
        self.apply(a[:n], b[:n], out=dst[:n], vectorized=vectorized)

    def describe(self, left: str, right: str) -> str:
        if self.swap:
            return f"({right} - {left})"
        return f"({left} {self.symbol} {right})"

    def __repr__(self) -> str:
        return f"Operation({self.name!r}, index={self.index})"


# Ordered registry; position is the serialized index
OPERATIONS: List[Operation] = [
    Operation('add', 0, '+', add, np.add, commutative=True),
    Operation('sub', 1, '-', sub, np.subtract),
    Operation('rsub', 2, '-', rsub, np.subtract, swap=True),
    Operation('mul', 3, '*', mul, np.multiply, commutative=True),
]

OP_COUNT = len(OPERATIONS)

OPERATIONS_BY_NAME: Dict[str, Operation] = {op.name: op for op in OPERATIONS}


def get_operation(key) -> Operation:
    """Get an operation by index or name."""
    if isinstance(key, str):
        if key not in OPERATIONS_BY_NAME:
            available = ', '.join(OPERATIONS_BY_NAME.keys())
            raise ValueError(f"Unknown operation: {key}. Available: {available}")
        return OPERATIONS_BY_NAME[key]
    index = int(key)
    if not 0 <= index < OP_COUNT:
        raise ValueError(f"Operation index {index} outside [0, {OP_COUNT})")
    return OPERATIONS[index]


def list_operations() -> List[str]:
    """List operation names in index order."""
    return [op.name for op in OPERATIONS]


def apply_all(a: np.ndarray, b: np.ndarray, vectorized: bool = True) -> np.ndarray:
    """
    Apply every operation to the same operands.

    Returns:
        Array of shape (OP_COUNT,) + broadcast(a, b).shape, indexed by op
    """
    shape = np.broadcast_shapes(np.shape(a), np.shape(b))
    result = np.empty((OP_COUNT,) + shape, dtype=np.float32)
    for op in OPERATIONS:
        op.apply(a, b, out=result[op.index], vectorized=vectorized)
    return result


def apply_rowwise(
    op_indices: np.ndarray,
    a: np.ndarray,
    b: np.ndarray,
    vectorized: bool = True,
) -> np.ndarray:
    """
    Apply a per-row operation to stacked operands.

    Args:
        op_indices: (n,) operation index per row
        a: (n, m) or (m,) left operands
        b: (n, m) or (m,) right operands

    Returns:
        (n, m) float32 array
    """
    op_indices = np.asarray(op_indices)
    n = len(op_indices)
    m = np.shape(a)[-1] if np.ndim(a) else np.shape(b)[-1]
    a = np.broadcast_to(a, (n, m))
    b = np.broadcast_to(b, (n, m))
    result = np.empty((n, m), dtype=np.float32)
    for op in OPERATIONS:
        rows = np.flatnonzero(op_indices == op.index)
        if len(rows):
            result[rows] = op.apply(a[rows], b[rows], vectorized=vectorized)
    return result


def simd_info() -> str:
    """Describe the vectorized kernel backend."""
    return f"numpy {np.__version__} ufunc kernels (float32)"
