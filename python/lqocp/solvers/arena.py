"""
Stage Arena
===========

One contiguous float64 buffer per arena, carved into per-stage array views.

Fields are laid out field-major (all stages of a field are adjacent), so
:meth:`StageArena.flat` returns a single contiguous slice per field and
whole-field updates (``z += alpha * dz``) run without a Python loop.

Views are rebuilt whenever the arena is created; they stay valid until the
owning solver reallocates.
"""

from typing import Dict, List, Mapping, Sequence, Tuple

import numpy as np

Shape = Tuple[int, ...]
Layout = Mapping[str, Sequence[Shape]]


class StageArena:
    """
    Owned storage with derived per-stage views.

    Args:
        layout: Field name -> list of per-stage shapes

    Example:
        >>> arena = StageArena({"x": [(2,), (2,), (2,)], "P": [(2, 2)] * 3})
        >>> arena["x"][1][:] = 1.0
        >>> arena.flat("x")
        array([0., 0., 1., 1., 0., 0.])
    """

    def __init__(self, layout: Layout) -> None:
        self.layout: Dict[str, List[Shape]] = {
            name: [tuple(int(d) for d in shape) for shape in shapes]
            for name, shapes in layout.items()
        }

        self._slices: Dict[str, slice] = {}
        offsets: Dict[str, List[int]] = {}
        total = 0
        for name, shapes in self.layout.items():
            start = total
            offsets[name] = []
            for shape in shapes:
                offsets[name].append(total)
                total += int(np.prod(shape, dtype=np.int64))
            self._slices[name] = slice(start, total)

        self.buffer = np.zeros(total)
        self._views: Dict[str, List[np.ndarray]] = {
            name: [
                self.buffer[off:off + int(np.prod(shape, dtype=np.int64))].reshape(shape)
                for off, shape in zip(offsets[name], shapes)
            ]
            for name, shapes in self.layout.items()
        }

    def __getitem__(self, name: str) -> List[np.ndarray]:
        return self._views[name]

    def flat(self, name: str) -> np.ndarray:
        """Contiguous 1-D view over every stage of one field."""
        return self.buffer[self._slices[name]]

    @property
    def nbytes(self) -> int:
        return self.buffer.nbytes

    def fill(self, value: float = 0.0) -> None:
        self.buffer.fill(value)

    def copy_from(self, other: "StageArena") -> None:
        """Copy the contents of an arena with the same layout."""
        if other.layout != self.layout:
            raise ValueError("cannot copy between arenas with different layouts")
        np.copyto(self.buffer, other.buffer)

    def __repr__(self) -> str:
        return f"StageArena(fields={list(self.layout)}, size={self.buffer.size})"
