"""
Navigation dispatcher.

Chains sessions when a canvas asks to open another canvas instead of
ending the flow. A navigation request is a ``selected`` frame with
payload ``{"action": "navigate", "canvas": <kind>}``.

The next canvas is launched only after the current session has been torn
down completely (socket removed, process exit observed), so a flow never
has more than one live canvas.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Mapping, Optional

from ..errors import CanvasConnectionError, CanvasError, ErrorCode, UnknownCanvasError
from .manager import HostConnectionManager
from .session import CanvasSession, SessionOutcome

logger = logging.getLogger(__name__)

NavigateCallback = Callable[[SessionOutcome, str], None]


class NavigationDispatcher:
    """
    Runs one interactive flow across any number of canvases.

    Usage:
        dispatcher = NavigationDispatcher(manager)
        outcome = await dispatcher.run("system")
        # outcome is the first non-navigation outcome of the flow
    """

    def __init__(
        self,
        manager: HostConnectionManager,
        on_navigate: Optional[NavigateCallback] = None,
        max_hops: Optional[int] = None,
    ):
        self.manager = manager
        self.on_navigate = on_navigate
        self.max_hops = max_hops
        self.history: list[SessionOutcome] = []

    async def run(
        self,
        kind: str,
        config: Mapping[str, Any] | None = None,
        scenario: str | None = None,
    ) -> SessionOutcome:
        """
        Launch ``kind`` and follow navigation requests.

        Returns:
            The outcome that ended the flow. Navigation to an unknown kind,
            a spawn failure or exceeding ``max_hops`` end the flow with a
            synthesized ``error`` outcome.
        """
        self.history = []
        hops = 0

        while True:
            outcome = await self._run_one(kind, config, scenario)
            self.history.append(outcome)

            target = outcome.navigation_target
            if target is None:
                return outcome

            if target not in self.manager.registry:
                logger.warning(f"{outcome.kind} requested navigation to unknown canvas: {target}")
                return self._record(self._synthesize(
                    outcome.session_id,
                    target,
                    UnknownCanvasError(target, requested_by=outcome.kind),
                ))

            hops += 1
            if self.max_hops is not None and hops > self.max_hops:
                logger.warning(f"Navigation limit of {self.max_hops} reached at {target}")
                return self._record(self._synthesize(
                    outcome.session_id,
                    target,
                    CanvasError(f"Navigation limit of {self.max_hops} reached", ErrorCode.NAVIGATION_LIMIT),
                ))

            logger.info(f"Navigating {outcome.kind} -> {target}")
            if self.on_navigate is not None:
                try:
                    self.on_navigate(outcome, target)
                except Exception as e:
                    logger.error(f"Navigation callback failed: {e}", exc_info=True)

            # Navigation starts the target fresh: no config, default scenario
            kind, config, scenario = target, None, None

    async def _run_one(
        self,
        kind: str,
        config: Mapping[str, Any] | None,
        scenario: str | None,
    ) -> SessionOutcome:
        try:
            handle = await self.manager.launch(kind, config, scenario)
        except CanvasConnectionError as e:
            return self._synthesize(f"{kind}-spawn", kind, e)
        return await handle.wait()

    def _record(self, outcome: SessionOutcome) -> SessionOutcome:
        self.history.append(outcome)
        return outcome

    @staticmethod
    def _synthesize(session_id: str, kind: str, error: CanvasError) -> SessionOutcome:
        session = CanvasSession(session_id, kind)
        session.fail(error)
        return session.outcome()


__all__ = [
    "NavigationDispatcher",
    "NavigateCallback",
]
