from __future__ import annotations
from ndview.array import ArrayBase, Array, ConstArray
from ndview.dtype import DType, dtypes, NATIVE
from ndview.errors import InvalidLayoutError
from ndview.helpers import debug
from ndview.layout import Layout
from ndview.manager import Manager
import ctypes

_PyBUF_READ, _PyBUF_WRITE = 0x100, 0x200
_memory_from_address = ctypes.pythonapi.PyMemoryView_FromMemory
_memory_from_address.restype = ctypes.py_object
_memory_from_address.argtypes = (ctypes.c_void_p, ctypes.c_ssize_t, ctypes.c_int)

def dtype_from_typestr(typestr:str) -> DType:
  """Descriptor for an array-interface type string such as '<f8' or '|u1'."""
  byteorder, kind, itemsize = typestr[0], typestr[1], int(typestr[2:])
  for base in (dtypes.bool, dtypes.int8, dtypes.uint8, dtypes.int16, dtypes.uint16, dtypes.int32, dtypes.uint32,
               dtypes.int64, dtypes.uint64, dtypes.float16, dtypes.float32, dtypes.float64):
    if base.kind == kind and base.itemsize == itemsize:
      return base if byteorder in '|=' or byteorder == NATIVE else base.newbyteorder()
  raise TypeError(f"Unsupported array-interface type {typestr!r}")

def array_interface(view:ArrayBase) -> dict:
  """
  NumPy ``__array_interface__`` describing a view. The buffer is exported
  read-only for read-only views so consumers cannot write through them.
  """
  buffer = view.data.buffer
  if view.readonly and not buffer.readonly: buffer = buffer.toreadonly()
  return {"version": 3, "shape": view.shape, "typestr": view.dtype.typestr, "strides": view.strides,
          "data": buffer, "offset": view.data.offset}

def _default_class(dtype:DType, ndim:int, readonly:bool) -> type[ArrayBase]:
  return (ConstArray if readonly else Array)[dtype if dtype.isnative else dtype.newbyteorder(), ndim, 0]

def from_buffer(obj, cls:type[ArrayBase]|None=None, readonly:bool|None=None) -> ArrayBase:
  """
  View the memory of a buffer-protocol exporter without copying. The view keeps
  ``obj`` alive. Non-contiguous exporters are accepted when they also provide
  ``__array_interface__``.
  """
  mv = memoryview(obj)
  # flat byte access needs a C-contiguous buffer in a native single-character format
  if not mv.c_contiguous or mv.format[:1] in ('<', '>', '!', '='):
    if hasattr(obj, "__array_interface__"): return from_array_interface(obj, cls, readonly)
    raise InvalidLayoutError(f"Cannot view {type(obj).__name__} with format {mv.format!r} and strides {mv.strides} without an array interface")
  dtype = dtypes.from_format(mv.format)
  readonly = mv.readonly if readonly is None else readonly or mv.readonly
  cls = cls or _default_class(dtype, mv.ndim, readonly)
  debug(1, "INTEROP", f"from_buffer {type(obj).__name__} format={mv.format} shape={mv.shape}")
  return cls.wrap(mv, mv.shape, mv.strides, Manager.keep_alive(obj), dtype)

def from_array_interface(obj, cls:type[ArrayBase]|None=None, readonly:bool|None=None) -> ArrayBase:
  """View the memory described by ``obj.__array_interface__`` without copying. The view keeps ``obj`` alive."""
  iface = obj.__array_interface__
  dtype = dtype_from_typestr(iface["typestr"])
  shape = tuple(iface["shape"])
  layout = Layout.contiguous(shape, dtype.itemsize) if iface.get("strides") is None else Layout.from_strides(shape, iface["strides"])
  data = iface.get("data")
  debug(1, "INTEROP", f"from_array_interface {type(obj).__name__} typestr={iface['typestr']} shape={shape} strides={layout.strides}")
  if not isinstance(data, tuple):
    # data shared through the buffer protocol of the object (or of "data") starting at "offset"
    buffer = memoryview(obj if data is None else data)
    readonly = buffer.readonly if readonly is None else readonly or buffer.readonly
    cls = cls or _default_class(dtype, len(shape), readonly)
    return cls.wrap(buffer, shape, layout.strides, Manager.keep_alive(obj), dtype, offset=iface.get("offset", 0))
  address, iface_readonly = data
  readonly = iface_readonly if readonly is None else readonly or iface_readonly
  lo, hi = layout.span(dtype.itemsize)
  buffer = _memory_from_address(address + lo, hi - lo, _PyBUF_READ if readonly else _PyBUF_WRITE)
  cls = cls or _default_class(dtype, len(shape), readonly)
  return cls.wrap(buffer, shape, layout.strides, Manager.keep_alive(obj), dtype, offset=-lo)
