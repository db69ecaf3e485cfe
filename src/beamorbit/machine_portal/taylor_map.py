from .element import Element
from pydantic import Field, field_validator
import numpy as np


class TaylorMap(Element):
    """First-order map element: ``z_out = R · z_in + c``.

    ``R`` and ``c`` come from the ``TaylorP`` group; unset entries default to
    the identity matrix and a zero offset.
    """
    type: str = Field(default='TaylorMap', description="Element type")

    @field_validator('type')
    @classmethod
    def validate_type(cls, v):
        if v != 'TaylorMap':
            raise ValueError("Type of a TaylorMap element must be 'TaylorMap'.")
        return v

    @property
    def matrix(self) -> np.ndarray:
        r = self.get_parameter("TaylorP", "r")
        if r is None:
            return np.identity(6)
        return np.asarray(r, dtype=float).reshape(6, 6)

    @property
    def offset(self) -> np.ndarray:
        c = self.get_parameter("TaylorP", "c")
        if c is None:
            return np.zeros(6)
        return np.asarray(c, dtype=float)

    def set_map(self, matrix, offset=None):
        """Store a 6x6 matrix (and optional offset) in the ``TaylorP`` group."""
        matrix = np.asarray(matrix, dtype=float)
        if matrix.shape != (6, 6):
            raise ValueError(f"TaylorMap matrix must be 6x6, got {matrix.shape}")
        self.add_parameter("TaylorP", "r", matrix.ravel().tolist())
        if offset is not None:
            self.add_parameter("TaylorP", "c", np.asarray(offset, dtype=float).ravel().tolist())
