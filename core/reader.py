"""Base reader abstraction"""
import abc


class DeviceReader(abc.ABC):
    """A controller source that pushes TransportMessages to its subscribers."""

    @abc.abstractmethod
    def start(self):
        raise NotImplementedError

    @abc.abstractmethod
    def stop(self):
        raise NotImplementedError

    @abc.abstractmethod
    def subscribe(self, callback):
        """Register ``callback(message)``; called from the reader's own thread."""
        raise NotImplementedError

    @abc.abstractmethod
    def is_alive(self) -> bool:
        raise NotImplementedError
