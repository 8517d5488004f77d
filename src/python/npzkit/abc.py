# npzkit/abc.py
"""Abstract Base Classes for the npzkit library."""

import abc


class BufferBase(abc.ABC):
    """
    Abstract byte range backing an array payload.

    A buffer only exposes its bytes and their length; the array on top of it
    decides how to interpret them.
    """

    @abc.abstractmethod
    def data(self) -> memoryview:
        """Returns a byte view of the whole payload."""
        raise NotImplementedError

    @abc.abstractmethod
    def __len__(self) -> int:
        raise NotImplementedError

    @property
    @abc.abstractmethod
    def readonly(self) -> bool:
        raise NotImplementedError

    @abc.abstractmethod
    def close(self) -> None:
        """
        Releases the underlying storage.
        Subsequent calls to `data()` will raise an error.
        """
        raise NotImplementedError

    @property
    @abc.abstractmethod
    def closed(self) -> bool:
        """Returns True if the buffer has been released."""
        raise NotImplementedError

    def __enter__(self) -> "BufferBase":
        if self.closed:
            raise ValueError("Cannot enter context with a closed buffer.")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
