from ndview.dtype import DType, dtypes
from ndview.errors import NdviewError, OutOfMemoryError, NoncontiguousError, InvalidLayoutError
from ndview.manager import Manager
from ndview.layout import Layout, MemoryOrder
from ndview.impl import ArrayImpl, Pointer
from ndview.array import ArrayBase, ConstArray, ConstArrayRef, Array, ArrayRef
from ndview.interop import from_buffer, from_array_interface, array_interface
