"""
Base classes for home-dashboard modules.

Modules are the pieces a session wires together: stores that mirror a feed
collection, the automation module, the dispatcher and the simulator.
"""

from abc import ABC, abstractmethod
from typing import Dict, List


class SessionModule(ABC):
    """
    Base class for session modules.

    A module:
    - Is attached to a session's Event Bus and feed scope
    - Maintains its own runtime state
    - Emits events that other modules can consume
    - Releases everything it acquired in detach()
    """

    @property
    @abstractmethod
    def id(self) -> str:
        """Unique identifier for this module type."""
        pass

    @abstractmethod
    def attach(self, bus, scope) -> None:
        """
        Attach the module to a session.

        Register subscriptions and capture references to bus and feed scope.

        Args:
            bus: EventBus instance
            scope: FeedScope for the session's namespace
        """
        pass

    def detach(self) -> None:
        """
        Release subscriptions and timers.

        Called once on session teardown. Default implementation does nothing.
        """
        pass

    def default_config(self) -> Dict:
        """
        Get default configuration for this module.

        Returns:
            Default configuration dict
        """
        return {}

    def dump_state(self) -> Dict:
        """
        Serialize runtime state for debugging or persistence.

        Returns:
            Serialized state dict
        """
        return {}


def cancel_all(subscriptions: List) -> None:
    """Cancel every subscription in the list and empty it."""
    for subscription in subscriptions:
        subscription.cancel()
    subscriptions.clear()
