from __future__ import annotations
from dataclasses import dataclass
from ndview.dtype import DType
from ndview.errors import InvalidLayoutError
from ndview.helpers import debug
from ndview.layout import Layout, MemoryOrder
from ndview.manager import Manager
import ctypes, weakref

def as_bytes(buffer) -> memoryview:
  mv = buffer if isinstance(buffer, memoryview) else memoryview(buffer)
  if not mv.c_contiguous: raise InvalidLayoutError(f"Cannot address a non-contiguous buffer of shape {mv.shape} as raw memory")
  if mv.format == 'B' and mv.ndim == 1: return mv
  try: return mv.cast('B')
  except TypeError as e:
    raise InvalidLayoutError(f"Cannot address a buffer with format {mv.format!r} as raw bytes") from e

class _Py_buffer(ctypes.Structure):
  _fields_ = [("buf", ctypes.c_void_p), ("obj", ctypes.c_void_p), ("len", ctypes.c_ssize_t), ("itemsize", ctypes.c_ssize_t),
              ("readonly", ctypes.c_int), ("ndim", ctypes.c_int), ("format", ctypes.c_char_p),
              ("shape", ctypes.c_void_p), ("strides", ctypes.c_void_p), ("suboffsets", ctypes.c_void_p), ("internal", ctypes.c_void_p)]

_get_buffer = ctypes.pythonapi.PyObject_GetBuffer
_get_buffer.restype = ctypes.c_int
_get_buffer.argtypes = (ctypes.py_object, ctypes.POINTER(_Py_buffer), ctypes.c_int)
_release_buffer = ctypes.pythonapi.PyBuffer_Release
_release_buffer.restype = None
_release_buffer.argtypes = (ctypes.POINTER(_Py_buffer),)

def buffer_address(buffer) -> int:
  view = _Py_buffer()
  _get_buffer(buffer, ctypes.byref(view), 0)
  try: return view.buf or 0
  finally: _release_buffer(ctypes.byref(view))

@dataclass(frozen=True, eq=False)
class Pointer:
  buffer:memoryview
  offset:int = 0
  base:int|None = None

  def __post_init__(self):
    if self.base is None: object.__setattr__(self, "base", buffer_address(self.buffer))

  def __add__(self, delta:int) -> Pointer: return Pointer(self.buffer, self.offset + delta, self.base)
  def __eq__(self, other): return isinstance(other, Pointer) and self.address == other.address
  def __hash__(self): return hash(self.address)
  def __repr__(self): return f"Pointer({self.address:#x})"

  @property
  def readonly(self) -> bool: return self.buffer.readonly
  @property
  def owner(self):
    # memoryviews made directly over foreign addresses have no exporting object
    return self.buffer if self.buffer.obj is None else self.buffer.obj
  @property
  def address(self) -> int: return self.base + self.offset

class ArrayImpl:
  """Pointer, element descriptor, layout and manager. Holds one reference on its manager until collected or closed."""
  __slots__ = ["data", "dtype", "layout", "manager", "_finalizer", "__weakref__"]
  def __init__(self, data:Pointer, dtype:DType, layout:Layout, manager:Manager|None=None):
    self.data, self.dtype, self.layout, self.manager = data, dtype, layout, manager
    self._finalizer = weakref.finalize(self, manager.acquire().release) if manager is not None else None

  @staticmethod
  def allocate(shape:tuple[int, ...], order:MemoryOrder, dtype:DType) -> ArrayImpl:
    layout = Layout.contiguous(shape, dtype.itemsize, order)
    buffer, manager = Manager.allocate(layout.nbytes(dtype.itemsize))
    debug(1, "IMPL", f"allocate shape={layout.shape} order={order} dtype={dtype.name}")
    return ArrayImpl(Pointer(buffer), dtype, layout, manager)

  @staticmethod
  def wrap(buffer, shape:tuple[int, ...], strides:tuple[int, ...]|None=None, manager:Manager|None=None,
           dtype:DType=None, order:MemoryOrder=MemoryOrder.ROW_MAJOR, offset:int=0,
           contiguity:int=0, writable:bool=False) -> ArrayImpl:
    # all validation happens before the manager is acquired
    assert dtype is not None, "An element descriptor is required to wrap memory"
    mv = as_bytes(buffer)
    if writable and mv.readonly: raise TypeError("Cannot create a mutable view of read-only memory")
    layout = Layout.contiguous(shape, dtype.itemsize, order) if strides is None else Layout.from_strides(shape, strides)
    lo, hi = layout.span(dtype.itemsize)
    if layout.size and (offset + lo < 0 or offset + hi > len(mv)):
      raise InvalidLayoutError(f"Layout {layout} at offset {offset} addresses bytes [{offset + lo}, {offset + hi}) outside a buffer of {len(mv)} bytes")
    layout.check_contiguity(contiguity, dtype.itemsize)
    debug(1, "IMPL", f"wrap shape={layout.shape} strides={layout.strides} offset={offset} dtype={dtype.name} manager={manager}")
    return ArrayImpl(Pointer(mv, offset), dtype, layout, manager)

  def copy(self, layout:Layout|None=None, offset:int=0) -> ArrayImpl:
    return ArrayImpl(self.data + offset, self.dtype, self.layout if layout is None else layout, self.manager)

  def close(self):
    if self._finalizer is not None: self._finalizer()
  @property
  def alive(self) -> bool: return self._finalizer is None or self._finalizer.alive

  def offset_of(self, indices:tuple[int, ...]) -> int:
    return self.data.offset + sum(i * st for i, st in zip(indices, self.layout.strides))
  def read(self, indices:tuple[int, ...]): return self.dtype.unpack(self.data.buffer, self.offset_of(indices))
  def write(self, indices:tuple[int, ...], value): self.dtype.pack(self.data.buffer, self.offset_of(indices), value)
  def write_raw(self, indices:tuple[int, ...], raw:bytes):
    start = self.offset_of(indices)
    self.data.buffer[start:start + len(raw)] = raw

  def __eq__(self, other):
    if not isinstance(other, ArrayImpl): return NotImplemented
    return self.data == other.data and self.layout == other.layout and self.dtype == other.dtype
  def __hash__(self): return hash((self.data, self.layout, self.dtype))
  def __repr__(self): return f"ArrayImpl({self.data}, {self.dtype}, shape={self.layout.shape}, strides={self.layout.strides}, {self.manager})"
