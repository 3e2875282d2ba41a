from typing import TypeVar, Iterable
import os
import functools, operator
T = TypeVar("T")

class Option:
  value: int
  key: str
  def __init__(self, key:str, default_value:int=0):
    self.key = key.upper()
    self.value = os.getenv(self.key, default_value)
    try: self.value = int(self.value)
    except ValueError:
      raise ValueError(f"Invalid value for {self.key}: {self.value}. Expected an integer.")
  def __bool__(self): return bool(self.value)
  def __ge__(self, x): return self.value >= x
  def __repr__(self): return f"{self.key}={self.value}"

DEBUG, BOUNDS_CHECK = Option("DEBUG"), Option("BOUNDS_CHECK", 1)

def prod(x:Iterable[T]) -> T|int: return functools.reduce(operator.mul, x, 1)
def tupled(x) -> tuple: return tuple(x) if isinstance(x, Iterable) else (x,)
def all_instance(items:Iterable[T], types:tuple[type]|type): return all(isinstance(x, types) for x in items)
def get_shape(x) -> tuple[int, ...]:
  if not hasattr(x, "__len__") or not hasattr(x, "__getitem__") or isinstance(x, (str, bytes)): return ()
  subs = [get_shape(xi) for xi in x]
  if not all(s == subs[0] for s in subs): raise ValueError(f"inhomogeneous shape from {x}")
  return (len(subs),) + (subs[0] if subs else ())
def fully_flatten(l):
  if hasattr(l, "__len__") and hasattr(l, "__getitem__") and not isinstance(l, (str, bytes)):
    flattened = []
    for li in l: flattened.extend(fully_flatten(li))
    return flattened
  return [l]
def debug(level:int, subsystem:str, message:str):
  if DEBUG >= level: print(f"{subsystem}: {message}")
