"""
Periodic endpoint health monitor.

Runs ``check_endpoints_health`` on an interval and answers
``check_requested`` signals: a request naming a URL probes that endpoint
only, an empty request triggers a full run.

Decision: D-012
"""

from __future__ import annotations

import asyncio
import logging

from squirt.endpoints.registry import EndpointRegistry
from squirt.errors import ConfigurationError
from squirt.events import CheckRequest, EventBus, Subscription
from squirt.scheduling import PeriodicTask

LOG = logging.getLogger("endpoints.monitor")

DEFAULT_INTERVAL = 60.0


class HealthMonitor:
    def __init__(self, registry: EndpointRegistry, events: EventBus, interval: float = DEFAULT_INTERVAL) -> None:
        self._registry = registry
        self._events = events
        self._task = PeriodicTask("endpoint-health", interval, self._run_checks)
        self._subscription: Subscription | None = None
        self._single_checks: set[asyncio.Task[bool]] = set()

    @property
    def is_running(self) -> bool:
        return self._task.is_running

    @property
    def interval(self) -> float:
        return self._task.interval

    def start(self) -> bool:
        """Start periodic checks (first run immediately). False if already running."""
        if not self._task.start():
            return False
        self._subscription = self._events.check_requested.subscribe(self._on_check_requested)
        return True

    async def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None
        await self._task.stop()
        for task in list(self._single_checks):
            task.cancel()
        await asyncio.gather(*self._single_checks, return_exceptions=True)
        self._single_checks.clear()

    def request_check(self, url: str | None = None) -> None:
        self._events.check_requested.publish(CheckRequest(url=url))

    async def _run_checks(self) -> None:
        await self._registry.check_endpoints_health()

    def _on_check_requested(self, request: CheckRequest) -> None:
        if request.url is None:
            self._task.trigger()
            return
        task = asyncio.get_running_loop().create_task(self._check_one(request.url))
        self._single_checks.add(task)
        task.add_done_callback(self._single_checks.discard)

    async def _check_one(self, url: str) -> bool:
        try:
            return await self._registry.check_endpoint(url)
        except ConfigurationError as exc:
            LOG.warning("Check requested for unknown endpoint %s: %s", url, exc)
            return False
