from __future__ import annotations
from typing import Callable, Any
from ndview.errors import OutOfMemoryError
from ndview.helpers import debug
import threading

class Manager:
  """
  Reference counted owner of a block of memory.

  Every ArrayImpl built on a manager acquires one reference and releases it
  when it is finalized. The release action runs exactly once, when the count
  drops back to zero.
  """
  __slots__ = ["_release", "_count", "_lock", "_released", "name", "__weakref__"]
  def __init__(self, release:Callable[[], Any]|None=None, name:str="manager"):
    self._release = release
    self._count = 0
    self._lock = threading.Lock()
    self._released = False
    self.name = name

  @property
  def refcount(self) -> int: return self._count
  @property
  def released(self) -> bool: return self._released

  def acquire(self) -> Manager:
    with self._lock:
      if self._released: raise ValueError(f"Cannot acquire {self}: memory has already been released")
      self._count += 1
      count = self._count
    debug(2, "MANAGER", f"acquire {self.name} -> {count}")
    return self

  def release(self):
    with self._lock:
      assert self._count > 0, f"Unbalanced release of {self}"
      self._count -= 1
      count = self._count
      fire = count == 0
      if fire: self._released = True
    debug(2, "MANAGER", f"release {self.name} -> {count}")
    if fire and self._release is not None:
      action, self._release = self._release, None
      action()

  def __repr__(self): return f"Manager({self.name}, refcount={self._count}{', released' if self._released else ''})"

  @staticmethod
  def allocate(nbytes:int) -> tuple[memoryview, Manager]:
    """Allocate a zeroed buffer of nbytes and a manager that releases it."""
    if nbytes < 0: raise ValueError(f"Cannot allocate a negative number of bytes: {nbytes}")
    try: buffer = memoryview(bytearray(nbytes))
    except (MemoryError, OverflowError) as e:
      raise OutOfMemoryError(f"Failed to allocate {nbytes} bytes") from e
    debug(1, "MANAGER", f"allocated {nbytes} bytes")
    return buffer, Manager.keep_alive(buffer.obj, name=f"bytearray[{nbytes}]")

  @staticmethod
  def keep_alive(obj:Any, name:str|None=None) -> Manager:
    """Manager that holds a strong reference to a foreign owner until released."""
    owner = [obj]
    return Manager(owner.clear, name=name or f"{type(obj).__name__}@{id(obj):#x}")
