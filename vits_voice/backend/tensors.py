"""Owning handle over output tensors allocated by an inference backend."""

from __future__ import annotations

import threading
from typing import Callable, Dict, Iterator, List, Optional, Sequence

import numpy as np

from vits_voice.errors import OperationError


class TensorBuffers:
    """
    Ordered, named output tensors plus the obligation to release them.

    ``release()`` runs the backend's release hook exactly once, no matter how
    many times it is called or from which exit path. Use it as a context
    manager where the buffers do not outlive one call.
    """

    def __init__(
        self,
        names: Sequence[str],
        values: Sequence[np.ndarray],
        on_release: Optional[Callable[[], None]] = None,
    ) -> None:
        if len(names) != len(values):
            raise OperationError(
                f"Backend returned {len(values)} tensors for {len(names)} output names."
            )
        self._tensors: Dict[str, np.ndarray] = dict(zip(names, values))
        self._on_release = on_release
        self._lock = threading.Lock()
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    @property
    def names(self) -> List[str]:
        return list(self._tensors)

    def __len__(self) -> int:
        return len(self._tensors)

    def __iter__(self) -> Iterator[str]:
        return iter(self._tensors)

    def __getitem__(self, key: int | str) -> np.ndarray:
        self._check_alive()
        if isinstance(key, int):
            return list(self._tensors.values())[key]
        return self._tensors[key]

    def first(self) -> np.ndarray:
        """Return the first output tensor."""
        self._check_alive()
        if not self._tensors:
            raise OperationError("Invalid output from model inference: no output tensors.")
        return next(iter(self._tensors.values()))

    def release(self) -> None:
        with self._lock:
            if self._released:
                return
            self._released = True
            on_release, self._on_release = self._on_release, None
            self._tensors = {}
        if on_release is not None:
            on_release()

    def _check_alive(self) -> None:
        if self._released:
            raise OperationError("Backend buffers were already released.")

    def __enter__(self) -> "TensorBuffers":
        return self

    def __exit__(self, *exc_info) -> None:
        self.release()
