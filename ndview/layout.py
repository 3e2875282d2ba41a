from __future__ import annotations
import functools, itertools, operator
from dataclasses import dataclass
from enum import auto, Enum
from ndview.errors import InvalidLayoutError, NoncontiguousError
from ndview.helpers import prod, all_instance

class MemoryOrder(Enum):
  ROW_MAJOR = auto(); COL_MAJOR = auto()
  def __str__(self): return self.name

@functools.lru_cache(maxsize=None)
def strides_for_shape(shape:tuple[int, ...], itemsize:int, order:MemoryOrder=MemoryOrder.ROW_MAJOR) -> tuple[int, ...]:
  if order is MemoryOrder.COL_MAJOR: return strides_for_shape(shape[::-1], itemsize)[::-1]
  if not shape: return ()
  return tuple(itertools.accumulate(reversed(shape[1:]), operator.mul, initial=itemsize))[::-1]

def _packed_dims(shape:tuple[int, ...], strides:tuple[int, ...], itemsize:int) -> int:
  # Leading dims of (shape, strides) that are packed innermost-first; unit extents carry no stride information
  expected, count = itemsize, 0
  for s, st in zip(shape, strides):
    if s != 1 and st != expected: break
    expected *= s
    count += 1
  return count

@dataclass(frozen=True)
class Layout:
  shape:tuple[int, ...]
  strides:tuple[int, ...]

  @staticmethod
  def contiguous(shape:tuple[int, ...], itemsize:int, order:MemoryOrder=MemoryOrder.ROW_MAJOR) -> Layout:
    shape = Layout._validate_shape(shape)
    return Layout(shape, strides_for_shape(shape, itemsize, order))

  @staticmethod
  def from_strides(shape:tuple[int, ...], strides:tuple[int, ...]) -> Layout:
    shape, strides = Layout._validate_shape(shape), tuple(strides)
    if not all_instance(strides, int): raise InvalidLayoutError(f"Strides must be integers, got {strides}")
    if len(shape) != len(strides): raise InvalidLayoutError(f"Shape {shape} and strides {strides} have different lengths")
    return Layout(shape, strides)

  @staticmethod
  def _validate_shape(shape) -> tuple[int, ...]:
    shape = tuple(shape)
    if not all_instance(shape, int) or any(isinstance(s, bool) for s in shape): raise InvalidLayoutError(f"Extents must be integers, got {shape}")
    if any(s < 0 for s in shape): raise InvalidLayoutError(f"Extents must be non-negative, got {shape}")
    return shape

  @property
  def rank(self) -> int: return len(self.shape)
  @property
  def size(self) -> int: return prod(self.shape)

  def nbytes(self, itemsize:int) -> int: return self.size * itemsize
  def element_strides(self, itemsize:int) -> tuple[int, ...]:
    if any(st % itemsize for st in self.strides): raise InvalidLayoutError(f"Strides {self.strides} are not multiples of the element size {itemsize}")
    return tuple(st // itemsize for st in self.strides)
  def span(self, itemsize:int) -> tuple[int, int]:
    """Byte range [lo, hi) touched relative to the first element."""
    if self.size == 0: return (0, 0)
    lo = sum(st * (s - 1) for s, st in zip(self.shape, self.strides) if st < 0)
    hi = sum(st * (s - 1) for s, st in zip(self.shape, self.strides) if st > 0)
    return (lo, hi + itemsize)

  def contiguity(self, itemsize:int) -> int:
    if self.size == 0: return self.rank
    return _packed_dims(self.shape[::-1], self.strides[::-1], itemsize)
  def col_contiguity(self, itemsize:int) -> int:
    if self.size == 0: return -self.rank
    return -_packed_dims(self.shape, self.strides, itemsize)
  def is_contiguous(self, c:int, itemsize:int) -> bool:
    if c == 0 or self.rank == 0: return True
    return self.contiguity(itemsize) >= c if c > 0 else self.col_contiguity(itemsize) <= c
  def check_contiguity(self, c:int, itemsize:int):
    if not self.is_contiguous(c, itemsize):
      raise NoncontiguousError(f"Layout with shape {self.shape} and strides {self.strides} is not contiguous to degree {c} for itemsize {itemsize}")

  def _dim(self, dim:int) -> int:
    if not -self.rank <= dim < self.rank: raise IndexError(f"Dimension {dim} out of range for rank {self.rank}")
    return dim % self.rank

  def index(self, dim:int, i:int) -> tuple[Layout, int]:
    dim = self._dim(dim)
    if not -self.shape[dim] <= i < self.shape[dim]: raise IndexError(f"Index {i} out of range for dimension {dim} with extent {self.shape[dim]}")
    i %= self.shape[dim]
    return Layout(self.shape[:dim] + self.shape[dim+1:], self.strides[:dim] + self.strides[dim+1:]), i * self.strides[dim]

  def slice(self, dim:int, s:slice) -> tuple[Layout, int]:
    dim = self._dim(dim)
    start, stop, step = s.indices(self.shape[dim])
    length = len(range(start, stop, step))
    offset = start * self.strides[dim] if length else 0
    return Layout(self.shape[:dim] + (length,) + self.shape[dim+1:],
                  self.strides[:dim] + (self.strides[dim] * step,) + self.strides[dim+1:]), offset

  def transpose(self, perm:tuple[int, ...]) -> tuple[Layout, int]:
    perm = tuple(perm)
    if sorted(perm) != list(range(self.rank)): raise InvalidLayoutError(f"Invalid permutation {perm} for rank {self.rank}")
    return Layout(tuple(self.shape[p] for p in perm), tuple(self.strides[p] for p in perm)), 0

  def squeeze(self, dim:int) -> tuple[Layout, int]:
    dim = self._dim(dim)
    if self.shape[dim] != 1: raise InvalidLayoutError(f"Cannot squeeze dimension {dim} with extent {self.shape[dim]}")
    return Layout(self.shape[:dim] + self.shape[dim+1:], self.strides[:dim] + self.strides[dim+1:]), 0

  def flip(self, dims:tuple[int, ...]) -> tuple[Layout, int]:
    dims = tuple(self._dim(d) for d in dims)
    if len(dims) != len(set(dims)): raise InvalidLayoutError(f"Dims {dims} need to be unique")
    strides, offset = list(self.strides), 0
    for d in dims:
      if self.shape[d] > 0: offset += (self.shape[d] - 1) * strides[d]
      strides[d] = -strides[d]
    return Layout(self.shape, tuple(strides)), offset

  def reshape(self, shape:tuple[int, ...], itemsize:int, order:MemoryOrder=MemoryOrder.ROW_MAJOR) -> tuple[Layout, int]:
    shape = Layout._validate_shape(shape)
    if prod(shape) != self.size: raise InvalidLayoutError(f"Cannot reshape {self.shape} into {shape}")
    self.check_contiguity(self.rank if order is MemoryOrder.ROW_MAJOR else -self.rank, itemsize)
    return Layout.contiguous(shape, itemsize, order), 0

# Static contiguity of derived views, computed from the parent's contiguity and the transform only

def index_contiguity(c:int, rank:int, dim:int) -> int:
  return min(c, rank - 1 - dim) if c >= 0 else -min(-c, dim)

def slice_contiguity(c:int, rank:int, dim:int, step:int, full:bool=False) -> int:
  if step == 1 and full: return c
  if step == 1: return min(c, rank - dim) if c >= 0 else -min(-c, dim + 1)
  return min(c, rank - dim - 1) if c >= 0 else -min(-c, dim)

def transpose_contiguity(c:int, perm:tuple[int, ...]) -> int:
  perm = tuple(perm)
  if perm == tuple(range(len(perm))): return c
  if perm == tuple(reversed(range(len(perm)))): return -c
  return 0

def squeeze_contiguity(c:int, rank:int, dim:int) -> int:
  if c > 0: return c - 1 if dim >= rank - c else min(c, rank - 1)
  if c < 0: return c + 1 if dim < -c else -min(-c, rank - 1)
  return 0

def flip_contiguity(c:int, rank:int, dims:tuple[int, ...]) -> int:
  for d in dims: c = slice_contiguity(c, rank, d % rank, -1)
  return c

def order_for(c:int) -> MemoryOrder: return MemoryOrder.ROW_MAJOR if c >= 0 else MemoryOrder.COL_MAJOR
