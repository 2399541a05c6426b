"""
Session lifecycle.

A Session is the explicit context object for one signed-in user. It is
built on login, owns the bus, the feed scope and every module, and tears
all of them down together on close():

    with Session(feed, auth, config) as session:
        session.start()
        session.toggle("light-1")

Auth never fails a session: a rejected custom token falls back to anonymous
sign-in, and if that fails too the session is ready in degraded mode with
no store access.
"""

import logging
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from home_dashboard.core.bus import Event, EventBus
from home_dashboard.core.config import DashboardConfig
from home_dashboard.core.errors import AuthError, FeedError
from home_dashboard.core.feed import FeedScope, PersistenceFeed, namespace_for
from home_dashboard.modules.automation import AutomationModule, RuleDraft, RuleStore
from home_dashboard.modules.base import SessionModule
from home_dashboard.modules.devices import DeviceStore
from home_dashboard.modules.dispatch import DispatchResult, FeedbackChannel, MutationDispatcher
from home_dashboard.modules.history import HistoryBuffer
from home_dashboard.modules.telemetry import TelemetrySimulator

logger = logging.getLogger(__name__)


# =============================================================================
# Auth
# =============================================================================


@dataclass(frozen=True)
class SessionIdentity:
    """
    Who the session belongs to.

    Attributes:
        user_id: Authenticated user id (None when degraded)
        anonymous: True for anonymous sign-in
        degraded: True when every sign-in attempt failed
    """

    user_id: Optional[str]
    anonymous: bool = False
    degraded: bool = False


class AuthProvider(ABC):
    """
    Abstract interface for the auth/session provider.

    The host provides a concrete implementation.
    """

    @abstractmethod
    def sign_in_with_token(self, token: str) -> str:
        """
        Sign in with a custom token.

        Returns:
            The user id

        Raises:
            AuthError: If the token is rejected
        """
        pass

    @abstractmethod
    def sign_in_anonymously(self) -> str:
        """
        Sign in without credentials.

        Returns:
            The user id

        Raises:
            AuthError: If anonymous sign-in is unavailable
        """
        pass


class MockAuthProvider(AuthProvider):
    """
    Mock auth provider for testing.

    Records sign-in attempts and can be told to reject either method.
    """

    def __init__(
        self,
        user_id: str = "test-user",
        anonymous_id: str = "anon-user",
        fail_token: bool = False,
        fail_anonymous: bool = False,
    ) -> None:
        self.user_id = user_id
        self.anonymous_id = anonymous_id
        self.fail_token = fail_token
        self.fail_anonymous = fail_anonymous
        self.attempts: List[str] = []

    def sign_in_with_token(self, token: str) -> str:
        self.attempts.append("token")
        if self.fail_token:
            raise AuthError("Invalid custom token")
        return self.user_id

    def sign_in_anonymously(self) -> str:
        self.attempts.append("anonymous")
        if self.fail_anonymous:
            raise AuthError("Anonymous sign-in disabled")
        return self.anonymous_id


def establish_identity(auth: AuthProvider, token: Optional[str] = None) -> SessionIdentity:
    """
    Sign in, degrading instead of failing.

    Args:
        auth: Auth provider
        token: Optional custom token (anonymous sign-in when None)

    Returns:
        The session identity; degraded=True if no sign-in succeeded
    """
    if token:
        try:
            return SessionIdentity(user_id=auth.sign_in_with_token(token))
        except AuthError as e:
            logger.warning(f"Token sign-in failed, falling back to anonymous: {e}")

    try:
        return SessionIdentity(user_id=auth.sign_in_anonymously(), anonymous=True)
    except AuthError as e:
        logger.warning(f"Anonymous sign-in failed, continuing degraded: {e}")
        return SessionIdentity(user_id=None, anonymous=True, degraded=True)


# =============================================================================
# Session
# =============================================================================


class Session:
    """
    One user's dashboard session.

    Responsibilities:
    - Establish the identity (exactly one ready transition)
    - Build the per-user feed scope and the modules
    - Subscribe to devices, history and rules
    - Tear everything down together on close()
    """

    def __init__(
        self,
        feed: PersistenceFeed,
        auth: AuthProvider,
        config: Optional[DashboardConfig] = None,
        token: Optional[str] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._feed = feed
        self._auth = auth
        self._config = config or DashboardConfig()
        self._config.validate()
        self._token = token

        self._bus = EventBus()
        self._feedback = FeedbackChannel(self._bus)
        self._devices = DeviceStore(
            seed_defaults=self._config.seed_defaults,
            feedback=self._feedback,
        )
        self._rules = RuleStore(feedback=self._feedback)
        self._history = HistoryBuffer(
            window_size=self._config.history_window,
            feedback=self._feedback,
        )
        self._dispatcher = MutationDispatcher(self._devices, self._feedback)
        self._automation = AutomationModule(self._devices, self._rules, self._dispatcher)
        self._telemetry = TelemetrySimulator(
            self._devices,
            self._history,
            self._dispatcher,
            device_id=self._config.telemetry_device_id,
            interval=self._config.telemetry_interval,
            jitter=self._config.telemetry_jitter,
            default_value=self._config.telemetry_default_value,
            rng=rng,
        )

        self._identity: Optional[SessionIdentity] = None
        self._scope: Optional[FeedScope] = None
        self._attached: List[SessionModule] = []
        self._closed = False

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> SessionIdentity:
        """
        Sign in and attach every module.

        Calling start() again returns the existing identity.

        Returns:
            The session identity
        """
        if self._closed:
            raise RuntimeError("Session is closed")
        if self._identity is not None:
            return self._identity

        identity = establish_identity(self._auth, self._token)
        self._identity = identity

        if identity.user_id is not None:
            self._scope = FeedScope(self._feed, namespace_for(self._config.app_id, identity.user_id))
            # Automation subscribes before the stores so the first snapshots are evaluated
            for module in (
                self._dispatcher,
                self._automation,
                self._devices,
                self._rules,
                self._history,
                self._telemetry,
            ):
                self._attach(module)

        logger.info(
            f"Session ready: user={identity.user_id} "
            f"anonymous={identity.anonymous} degraded={identity.degraded}"
        )
        self._bus.publish(
            Event(
                type="session.ready",
                source="session",
                payload={
                    "user_id": identity.user_id,
                    "anonymous": identity.anonymous,
                    "degraded": identity.degraded,
                },
            )
        )
        return identity

    def _attach(self, module: SessionModule) -> None:
        try:
            module.attach(self._bus, self._scope)
        except FeedError as e:
            logger.error(f"Error attaching {module.id}: {e}", exc_info=True)
            self._feedback.error(f"Failed to load {module.id}.")
            # Release whatever the module acquired before failing
            module.detach()
            return
        self._attached.append(module)

    def close(self) -> None:
        """Cancel every subscription and stop the simulator. Idempotent."""
        if self._closed:
            return
        self._closed = True

        for module in reversed(self._attached):
            module.detach()
        self._attached.clear()
        self._bus.clear()
        self._feedback.set_bus(None)
        logger.info(f"Session closed: user={self.user_id}")

    def __enter__(self) -> "Session":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # =========================================================================
    # State
    # =========================================================================

    @property
    def identity(self) -> Optional[SessionIdentity]:
        return self._identity

    @property
    def user_id(self) -> Optional[str]:
        return self._identity.user_id if self._identity else None

    @property
    def ready(self) -> bool:
        return self._identity is not None and not self._closed

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def namespace(self) -> Optional[str]:
        return self._scope.namespace if self._scope else None

    @property
    def config(self) -> DashboardConfig:
        return self._config

    @property
    def bus(self) -> EventBus:
        return self._bus

    @property
    def feedback(self) -> FeedbackChannel:
        return self._feedback

    @property
    def devices(self) -> DeviceStore:
        return self._devices

    @property
    def rules(self) -> RuleStore:
        return self._rules

    @property
    def history(self) -> HistoryBuffer:
        return self._history

    @property
    def dispatcher(self) -> MutationDispatcher:
        return self._dispatcher

    @property
    def automation(self) -> AutomationModule:
        return self._automation

    @property
    def telemetry(self) -> TelemetrySimulator:
        return self._telemetry

    # =========================================================================
    # User actions
    # =========================================================================

    def _require_store(self) -> None:
        if not self.ready:
            raise RuntimeError("Session not ready")
        if self._scope is None:
            raise RuntimeError("Session has no store access (degraded sign-in)")

    def toggle(self, device_id: str) -> DispatchResult:
        """Flip a light or fan (one write)."""
        self._require_store()
        return self._dispatcher.toggle(device_id)

    def set_target_temp(self, device_id: str, value: float) -> DispatchResult:
        """Thermostat slider (one write)."""
        self._require_store()
        return self._dispatcher.set_target_temp(device_id, value)

    def set_brightness(self, device_id: str, value: float) -> DispatchResult:
        """Light slider (one write)."""
        self._require_store()
        return self._dispatcher.set_brightness(device_id, value)

    def create_rule(self, draft: RuleDraft) -> Optional[str]:
        """Submit the rule form; returns the new rule id or None."""
        self._require_store()
        rule_id = self._rules.create(draft)
        if rule_id is not None:
            draft.reset()
        return rule_id

    def tick(self, now: Optional[datetime] = None) -> Optional[float]:
        """Drive the telemetry simulator (host timer callback)."""
        if not self.ready:
            return None
        return self._telemetry.tick(now)

    def next_tick(self, now: Optional[datetime] = None) -> Optional[datetime]:
        """When the host timer should fire next, or None."""
        if not self.ready:
            return None
        return self._telemetry.next_tick(now)
