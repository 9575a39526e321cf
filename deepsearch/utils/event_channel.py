"""
deepsearch/utils/event_channel.py

Typed publish/subscribe channel.

Contains:
- EventChannel: one channel per event stream, with named subscribers
- Subscribers are called synchronously, in the order they subscribed
"""

from collections.abc import Callable
from typing import Generic, TypeVar

from deepsearch.utils.logger import get_logger

logger = get_logger(name=__name__)

T = TypeVar("T")


class EventChannel(Generic[T]):
    """
    A typed, synchronous event channel.

    Every subscriber has a name so the fan-out of a stream is explicit and
    inspectable. A subscriber that raises is logged; the remaining subscribers
    still receive the event.
    """

    # Magic methods ________________________________________________________________________________________________________

    def __init__(self, name: str) -> None:
        """
        Initialize the channel.

        Args:
            name: Channel name, used in log output.
        """
        self.name = name
        self._subscribers: list[tuple[str, Callable[[T], None]]] = []

    def __repr__(self) -> str:
        return f"EventChannel(name={self.name!r}, subscribers={self.subscribers!r})"

    # Properties ___________________________________________________________________________________________________________

    @property
    def subscribers(self) -> list[str]:
        """Names of the current subscribers, in delivery order."""
        return [name for name, _ in self._subscribers]

    # Public methods _______________________________________________________________________________________________________

    def subscribe(self, name: str, handler: Callable[[T], None]) -> Callable[[], None]:
        """
        Register a named subscriber.

        Args:
            name: Unique subscriber name within this channel.
            handler: Callable invoked with each published event.

        Returns:
            A callable that removes the subscription.

        Raises:
            ValueError: If a subscriber with the same name already exists.
        """
        if name in self.subscribers:
            raise ValueError(f"Subscriber '{name}' already registered on channel '{self.name}'")
        self._subscribers.append((name, handler))
        logger.debug("Subscribed %s to channel %s", name, self.name)

        def unsubscribe() -> None:
            self._subscribers = [(n, h) for n, h in self._subscribers if n != name]

        return unsubscribe

    def publish(self, event: T) -> None:
        """Deliver an event to every subscriber, in subscription order."""
        for name, handler in list(self._subscribers):
            try:
                handler(event)
            except Exception as e:
                logger.exception("Subscriber %s failed on channel %s: %s", name, self.name, e)
