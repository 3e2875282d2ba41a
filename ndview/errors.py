class NdviewError(Exception):
  """Base class for errors raised by ndview."""

class OutOfMemoryError(NdviewError, MemoryError):
  """A buffer of the requested footprint could not be allocated."""

class NoncontiguousError(NdviewError, ValueError):
  """A layout does not satisfy the contiguity a view type promises."""

class InvalidLayoutError(NdviewError, ValueError):
  """A shape, stride set or buffer footprint is inconsistent with the requested view."""
