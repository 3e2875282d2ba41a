from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import Literal
import struct, sys

FmtStr = Literal['?', 'b', 'B', 'h', 'H', 'i', 'I', 'l', 'L', 'q', 'Q', 'e', 'f', 'd']
ByteOrder = Literal['<', '>']

NATIVE:ByteOrder = '<' if sys.byteorder == 'little' else '>'
_KIND = {'?': 'b', 'b': 'i', 'h': 'i', 'i': 'i', 'l': 'i', 'q': 'i', 'B': 'u', 'H': 'u', 'I': 'u', 'L': 'u', 'Q': 'u', 'e': 'f', 'f': 'f', 'd': 'f'}

@dataclass(frozen=True)
class DType:
  """
  Runtime description of the scalar stored in each cell of a view.

  Two descriptors are equal when they describe the same binary layout: the
  same struct code, size and byte order. The name is only used for printing.
  """
  itemsize: int
  name: str = field(compare=False)
  fmt: FmtStr
  byteorder: ByteOrder = NATIVE

  def __post_init__(self):
    assert self.fmt in _KIND, f"Unsupported struct format {self.fmt!r}"
    assert struct.calcsize('=' + self.fmt) == self.itemsize, f"Itemsize {self.itemsize} does not match format {self.fmt!r}"

  @staticmethod
  def new(itemsize:int, name:str, fmt:FmtStr, byteorder:ByteOrder=NATIVE): return DType(itemsize, name, fmt, byteorder)

  @property
  def struct_fmt(self) -> str: return self.byteorder + self.fmt
  @property
  def kind(self) -> str: return _KIND[self.fmt]
  @property
  def typestr(self) -> str: return f"{'|' if self.itemsize == 1 else self.byteorder}{self.kind}{self.itemsize}"
  @property
  def isnative(self) -> bool: return self.itemsize == 1 or self.byteorder == NATIVE

  def newbyteorder(self) -> DType: return replace(self, byteorder='>' if self.byteorder == '<' else '<')
  def compatible(self, other:DType) -> bool: return self.fmt == other.fmt and self.itemsize == other.itemsize

  def unpack(self, buffer, offset:int): return struct.unpack_from(self.struct_fmt, buffer, offset)[0]
  def pack(self, buffer, offset:int, value): struct.pack_into(self.struct_fmt, buffer, offset, value)
  def encode(self, value) -> bytes: return struct.pack(self.struct_fmt, value)

  def __repr__(self): return f"dtypes.{self.name}" if self.isnative else f"dtypes.{self.name}.newbyteorder()"

class dtypes:
  bool = DType(1, 'bool', '?')
  int8 = DType(1, 'int8', 'b')
  uint8 = DType(1, 'uint8', 'B')
  int16 = DType(2, 'int16', 'h')
  uint16 = DType(2, 'uint16', 'H')
  int32 = DType(4, 'int32', 'i')
  uint32 = DType(4, 'uint32', 'I')
  int64 = DType(8, 'int64', 'q')
  uint64 = DType(8, 'uint64', 'Q')
  float16 = DType(2, 'float16', 'e')
  float32 = DType(4, 'float32', 'f')
  float64 = DType(8, 'float64', 'd')
  int = int64
  float = float64

  @staticmethod
  def get_dtype(value) -> DType: return getattr(dtypes, type(value).__name__.lower())

  @staticmethod
  def from_format(fmt:str) -> DType:
    """Descriptor for a buffer-protocol format string such as 'd', '<i' or '>H'."""
    byteorder, prefix = NATIVE, '@'
    if fmt and fmt[0] in '@=<>!':
      prefix, fmt = fmt[0], fmt[1:]
      if prefix in '<>!': byteorder = '>' if prefix == '!' else prefix
    if fmt not in _KIND: raise TypeError(f"Unsupported element format {fmt!r}")
    # 'l' is platform sized under native alignment; map it onto the fixed-size codes
    itemsize = struct.calcsize(prefix + fmt)
    base = next((d for d in _ALL if d.kind == _KIND[fmt] and d.itemsize == itemsize), None)
    if base is None: raise TypeError(f"Unsupported element format {fmt!r}")
    return replace(base, byteorder=byteorder)

_ALL = (dtypes.bool, dtypes.int8, dtypes.uint8, dtypes.int16, dtypes.uint16, dtypes.int32, dtypes.uint32,
        dtypes.int64, dtypes.uint64, dtypes.float16, dtypes.float32, dtypes.float64)
