"""
The transport the generated modules talk to.

Generated host modules call ``register``/``register_generator``; generated
client modules call ``invoke``/``iterate``. Any object with these methods
works; the message transport itself lives outside this package.
"""

from typing import Any, AsyncIterator, Awaitable, Callable, Protocol


class RpcController(Protocol):
    def register(self, channel: str, handler: Callable[..., Awaitable[Any]]) -> None:
        """Route calls on ``channel`` to ``handler`` (host side)."""
        ...

    def register_generator(
        self, channel: str, handler: Callable[..., AsyncIterator[Any]]
    ) -> None:
        """Route streaming calls on ``channel`` to ``handler`` (host side)."""
        ...

    def invoke(self, channel: str, *args: Any) -> Awaitable[Any]:
        """Call the handler bound to ``channel`` with positional arguments."""
        ...

    def iterate(self, channel: str, *args: Any) -> AsyncIterator[Any]:
        """Stream the values yielded by the handler bound to ``channel``."""
        ...

    def insert_message(self, message: Any) -> None:
        """Feed one message received from the other context into the controller."""
        ...
