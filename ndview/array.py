from __future__ import annotations
from typing import Iterator
from ndview.dtype import DType
from ndview.errors import InvalidLayoutError, NoncontiguousError
from ndview.helpers import BOUNDS_CHECK, tupled, get_shape, fully_flatten
from ndview.impl import ArrayImpl, Pointer
from ndview.layout import (Layout, MemoryOrder, order_for, index_contiguity, slice_contiguity,
                           transpose_contiguity, squeeze_contiguity, flip_contiguity)
from ndview.manager import Manager
import functools, itertools, operator

@functools.lru_cache(maxsize=None)
def _specialize(family:type[ArrayBase], element:DType, ndim:int, contiguity:int) -> type[ArrayBase]:
  if not isinstance(element, DType): raise TypeError(f"Element type must be a DType, got {element!r}")
  if not isinstance(ndim, int) or ndim < 0: raise TypeError(f"Rank must be a non-negative int, got {ndim!r}")
  if not isinstance(contiguity, int) or not -ndim <= contiguity <= ndim:
    raise TypeError(f"Contiguity must be an int in [{-ndim}, {ndim}] for rank {ndim}, got {contiguity!r}")
  bases = (family,)
  # mutable specializations are also instances of the matching read-only specialization
  if family._mutable: bases += (_specialize(family._const, element, ndim, contiguity),)
  name = f"{family.__name__}[{element.name}, {ndim}, {contiguity}]"
  return type(name, bases, {"__slots__": (), "element": element, "ndim": ndim, "contiguity": contiguity,
                            "_family": family, "__module__": family.__module__})

def _nest(flat:list, shape:tuple[int, ...]):
  if not shape: return flat[0]
  if len(shape) == 1: return list(flat)
  step = len(flat) // shape[0] if shape[0] else 0
  return [_nest(flat[i*step:(i+1)*step], shape[1:]) for i in range(shape[0])]

class ArrayBase:
  """
  Handle over an ArrayImpl whose class records the element type, the rank and
  the contiguity promise. Specialize a family with ``Family[dtype, ndim, contiguity]``;
  contiguity defaults to 1.

  Contiguity ``c > 0`` promises that the last ``c`` dimensions are row-major
  contiguous, ``c < 0`` that the first ``-c`` dimensions are column-major
  contiguous and ``0`` promises nothing.
  """
  __slots__ = ["_impl"]
  element:DType|None = None
  ndim:int|None = None
  contiguity:int = 1
  _family:type[ArrayBase]|None = None
  _mutable = False
  _const:type[ArrayBase]
  _deep:type[ArrayBase]
  _shallow:type[ArrayBase]

  def __class_getitem__(cls, params) -> type[ArrayBase]:
    if cls.ndim is not None: raise TypeError(f"{cls.__name__} is already specialized")
    params = tupled(params)
    if len(params) not in (2, 3): raise TypeError(f"Expected {cls.__name__}[dtype, ndim] or {cls.__name__}[dtype, ndim, contiguity], got {params}")
    return _specialize(cls, *params) if len(params) == 3 else _specialize(cls, *params, 1)

  def __init__(self, impl:ArrayImpl, check:bool=True):
    cls = type(self)
    cls._require_specialized()
    if not isinstance(impl, ArrayImpl): raise TypeError(f"Expected an ArrayImpl, got {type(impl).__name__}")
    if impl.layout.rank != cls.ndim: raise InvalidLayoutError(f"{cls.__name__} needs rank {cls.ndim}, got layout of rank {impl.layout.rank}")
    cls._resolve_dtype(impl.dtype)
    if cls._mutable and impl.data.readonly: raise TypeError("Cannot create a mutable view of read-only memory")
    if check: impl.layout.check_contiguity(cls.contiguity, impl.dtype.itemsize)
    self._impl = impl

  @classmethod
  def _require_specialized(cls):
    if cls.ndim is None: raise TypeError(f"{cls.__name__} must be specialized before use, e.g. {cls.__name__}[dtypes.float64, 2]")
  @classmethod
  def _resolve_dtype(cls, dtype:DType|None) -> DType:
    if dtype is None: return cls.element
    if not isinstance(dtype, DType) or not dtype.compatible(cls.element):
      raise TypeError(f"Element descriptor {dtype!r} does not describe {cls.element!r}")
    return dtype
  @classmethod
  def _order(cls, order:MemoryOrder|None) -> MemoryOrder:
    default = order_for(cls.contiguity)
    if order is None: return default
    if cls.contiguity != 0 and order is not default:
      raise NoncontiguousError(f"Memory order {order} is incompatible with contiguity {cls.contiguity}")
    return order
  @classmethod
  def _shape(cls, shape) -> tuple[int, ...]:
    shape = tupled(shape)
    if len(shape) != cls.ndim: raise InvalidLayoutError(f"{cls.__name__} needs a shape of length {cls.ndim}, got {shape}")
    return shape

  # Construction

  @classmethod
  def allocate(cls, shape, dtype:DType|None=None, order:MemoryOrder|None=None):
    cls._require_specialized()
    dtype, shape, order = cls._resolve_dtype(dtype), cls._shape(shape), cls._order(order)
    return cls(ArrayImpl.allocate(shape, order, dtype), check=False)
  zeros = allocate

  @classmethod
  def wrap(cls, buffer, shape, strides=None, manager:Manager|None=None, dtype:DType|None=None,
           order:MemoryOrder|None=None, offset:int=0, skip_contiguity_check:bool=False):
    cls._require_specialized()
    dtype, shape = cls._resolve_dtype(dtype), cls._shape(shape)
    order = cls._order(order) if strides is None else MemoryOrder.ROW_MAJOR
    contiguity = 0 if strides is None or skip_contiguity_check else cls.contiguity
    impl = ArrayImpl.wrap(buffer, shape, strides, manager, dtype, order, offset, contiguity=contiguity, writable=cls._mutable)
    return cls(impl, check=False)

  @classmethod
  def from_impl(cls, impl:ArrayImpl, check:bool=True): return cls(impl, check=check)

  # Introspection

  @property
  def impl(self) -> ArrayImpl: return self._impl
  @property
  def data(self) -> Pointer: return self._impl.data
  @property
  def dtype(self) -> DType: return self._impl.dtype
  @property
  def manager(self) -> Manager|None: return self._impl.manager
  @property
  def layout(self) -> Layout: return self._impl.layout
  @property
  def shape(self) -> tuple[int, ...]: return self._impl.layout.shape
  @property
  def strides(self) -> tuple[int, ...]: return self._impl.layout.strides
  @property
  def element_strides(self) -> tuple[int, ...]: return self._impl.layout.element_strides(self.itemsize)
  @property
  def itemsize(self) -> int: return self._impl.dtype.itemsize
  @property
  def size(self) -> int: return self._impl.layout.size
  @property
  def nbytes(self) -> int: return self._impl.layout.nbytes(self.itemsize)
  @property
  def readonly(self) -> bool: return not self._mutable
  def is_contiguous(self, c:int|None=None) -> bool:
    return self._impl.layout.is_contiguous(self.ndim if c is None else c, self.itemsize)
  @property
  def __array_interface__(self) -> dict:
    from ndview.interop import array_interface
    return array_interface(self)

  def close(self): self._impl.close()
  def __enter__(self): return self
  def __exit__(self, *exc): self.close()

  def __eq__(self, other):
    if not isinstance(other, ArrayBase): return NotImplemented
    return self._impl == other._impl
  def __ne__(self, other):
    if not isinstance(other, ArrayBase): return NotImplemented
    return self._impl != other._impl
  def __hash__(self): return hash(self._impl)
  def __repr__(self): return f"{type(self).__name__}(shape={self.shape}, strides={self.strides}, data={self.data})"

  # Element access and derivation

  def _normalize_key(self, key) -> tuple:
    key = key if isinstance(key, tuple) else (key,)
    if (ellipses := sum(k is Ellipsis for k in key)) > 1: raise IndexError("An index can only have a single ellipsis ('...')")
    if ellipses:
      at = next(i for i, k in enumerate(key) if k is Ellipsis)
      key = key[:at] + (slice(None),) * (self.ndim - len(key) + 1) + key[at+1:]
    if len(key) > self.ndim: raise IndexError(f"Too many indices for {type(self).__name__}: got {len(key)}")
    return key + (slice(None),) * (self.ndim - len(key))

  def _element_index(self, key:tuple) -> tuple[int, ...]:
    indices = []
    for d, (k, s) in enumerate(zip(key, self.shape)):
      i = operator.index(k)
      if i < 0: i += s
      if BOUNDS_CHECK and not 0 <= i < s: raise IndexError(f"Index {k} out of range for dimension {d} with extent {s}")
      indices.append(i)
    return tuple(indices)

  def _derive(self, family:type[ArrayBase], layout:Layout, offset:int, contiguity:int):
    return family[self.element, layout.rank, contiguity](self._impl.copy(layout, offset), check=False)

  def __getitem__(self, key):
    key = self._normalize_key(key)
    if not any(isinstance(k, slice) for k in key): return self._impl.read(self._element_index(key))
    layout, offset, c, dim = self._impl.layout, 0, self.contiguity, 0
    for k in key:
      if isinstance(k, slice):
        start, stop, step = k.indices(layout.shape[dim])
        c = slice_contiguity(c, layout.rank, dim, step, full=start == 0 and stop == layout.shape[dim])
        layout, delta = layout.slice(dim, k)
        dim += 1
      else:
        c = index_contiguity(c, layout.rank, dim)
        layout, delta = layout.index(dim, operator.index(k))
      offset += delta
    return self._derive(self._family, layout, offset, c)

  def __len__(self) -> int:
    if self.ndim == 0: raise TypeError("len() of a rank 0 view")
    return self.shape[0]
  def __iter__(self) -> Iterator:
    for i in range(len(self)): yield self[i]

  def indices(self) -> Iterator[tuple[int, ...]]: return itertools.product(*map(range, self.shape))
  def tolist(self):
    return _nest([self._impl.read(i) for i in self.indices()], self.shape)

  def transpose(self, *perm:int):
    perm = tuple(perm[0]) if len(perm) == 1 and not isinstance(perm[0], int) else perm
    perm = perm or tuple(reversed(range(self.ndim)))
    layout, offset = self._impl.layout.transpose(perm)
    return self._derive(self._family, layout, offset, transpose_contiguity(self.contiguity, perm))
  @property
  def T(self): return self.transpose()

  def squeeze(self, dim:int):
    layout, offset = self._impl.layout.squeeze(dim)
    return self._derive(self._family, layout, offset, squeeze_contiguity(self.contiguity, self.ndim, dim % self.ndim))

  def flip(self, *dims:int):
    dims = dims or tuple(range(self.ndim))
    layout, offset = self._impl.layout.flip(dims)
    return self._derive(self._family, layout, offset, flip_contiguity(self.contiguity, self.ndim, dims))

  def reshape(self, *shape, order:MemoryOrder|None=None):
    shape = tuple(shape[0]) if len(shape) == 1 and not isinstance(shape[0], int) else shape
    order = order_for(self.contiguity) if order is None else order
    layout, offset = self._impl.layout.reshape(shape, self.itemsize, order)
    return self._derive(self._family, layout, offset, len(shape) if order is MemoryOrder.ROW_MAJOR else -len(shape))
  def flatten(self, order:MemoryOrder|None=None): return self.reshape((self.size,), order=order)

  # Conversion

  def as_const(self):
    return self._derive(self._const, self._impl.layout, 0, self.contiguity)

  def with_contiguity(self, c:int):
    if not -self.ndim <= c <= self.ndim: raise TypeError(f"Contiguity must be in [{-self.ndim}, {self.ndim}], got {c}")
    weaker = c == 0 or (c > 0 and 0 < c <= self.contiguity) or (c < 0 and self.contiguity <= c < 0)
    if not weaker: self._impl.layout.check_contiguity(c, self.itemsize)
    return self._derive(self._family, self._impl.layout, 0, c)

  def deep(self):
    return self._derive(self._deep, self._impl.layout, 0, self.contiguity)
  def shallow(self):
    return self._derive(self._shallow, self._impl.layout, 0, self.contiguity)

  def copy(self) -> Array:
    out = Array[self.element, self.ndim, self.ndim].allocate(self.shape, self.dtype)
    out.deep().assign(self)
    return out

class ConstArray(ArrayBase):
  __slots__ = ()

class ConstArrayRef(ConstArray):
  __slots__ = ()

  def deep_equal(self, other) -> bool:
    other_shape = other.shape if isinstance(other, ArrayBase) else get_shape(other)
    if tuple(other_shape) != self.shape: return False
    values = other.tolist() if isinstance(other, ArrayBase) else other
    return fully_flatten(values) == fully_flatten(self.tolist())

class Array(ConstArray):
  __slots__ = ()
  _mutable = True

  def __setitem__(self, key, value):
    key = self._normalize_key(key)
    if not any(isinstance(k, slice) for k in key): self._impl.write(self._element_index(key), value)
    else: self[key].deep().assign(value)

  @classmethod
  def from_list(cls, data, dtype:DType|None=None, order:MemoryOrder|None=None):
    shape = get_shape(data)
    out = (cls if cls.ndim is not None else cls[dtype, len(shape)]).allocate(shape, dtype, order)
    out.deep().assign(data)
    return out

  @classmethod
  def unsafe_from_const(cls, view:ConstArray):
    # only writability is checked, nothing else may rely on the data staying constant
    target = cls if cls.ndim is not None else cls[view.element, view.ndim, view.contiguity]
    if view.ndim != target.ndim: raise InvalidLayoutError(f"{target.__name__} needs rank {target.ndim}, got a view of rank {view.ndim}")
    target._resolve_dtype(view.dtype)
    if view.data.readonly: raise TypeError("Cannot create a mutable view of read-only memory")
    if target.contiguity != view.contiguity: view.layout.check_contiguity(target.contiguity, view.itemsize)
    return target(view.impl.copy(), check=False)

class ArrayRef(Array, ConstArrayRef):
  """Mutable view whose assignments copy elements into the viewed memory."""
  __slots__ = ()

  def fill(self, value):
    raw = self.dtype.encode(value)
    for i in self.indices(): self._impl.write_raw(i, raw)

  def assign(self, other):
    if isinstance(other, ArrayBase):
      if other.shape != self.shape: raise InvalidLayoutError(f"Cannot assign shape {other.shape} to shape {self.shape}")
      values = [other.impl.read(i) for i in other.indices()]
    elif hasattr(other, "__len__") and not isinstance(other, (str, bytes)):
      if get_shape(other) != self.shape: raise InvalidLayoutError(f"Cannot assign shape {get_shape(other)} to shape {self.shape}")
      values = fully_flatten(other)
    else: return self.fill(other)
    # encode everything before the first write
    raw = [self.dtype.encode(v) for v in values]
    for i, r in zip(self.indices(), raw): self._impl.write_raw(i, r)

ConstArray._const, ConstArray._deep, ConstArray._shallow = ConstArray, ConstArrayRef, ConstArray
ConstArrayRef._const, ConstArrayRef._deep, ConstArrayRef._shallow = ConstArrayRef, ConstArrayRef, ConstArray
Array._const, Array._deep, Array._shallow = ConstArray, ArrayRef, Array
ArrayRef._const, ArrayRef._deep, ArrayRef._shallow = ConstArrayRef, ArrayRef, Array
