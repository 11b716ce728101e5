"""Actions fired when the group verdict flips."""

import logging
from typing import List, Optional, Sequence, Tuple

from netpinger.metrics import notifications_failed_total, notifications_sent_total
from netpinger.notifications.command_runner import run_command
from netpinger.notifications.webhook_notifier import send_verdict_webhook
from netpinger.probe.group import Verdict

logger = logging.getLogger(__name__)


class ActionDispatcher:
    """Runs the configured channels for ``alive`` and ``dead`` verdicts.

    Channels are a shell command per verdict and an optional webhook shared by
    both. A failing channel is logged and counted; it never raises into the
    round loop.
    """

    def __init__(
        self,
        alive_cmd: Optional[str] = None,
        dead_cmd: Optional[str] = None,
        webhook_url: Optional[str] = None,
        action_timeout: float = 60.0,
        targets: Sequence[str] = (),
    ):
        self.commands = {Verdict.ALIVE: alive_cmd, Verdict.DEAD: dead_cmd}
        self.webhook_url = webhook_url
        self.action_timeout = action_timeout
        self.targets = list(targets)

    @classmethod
    def from_settings(cls, settings) -> "ActionDispatcher":
        return cls(
            alive_cmd=settings.alive_cmd,
            dead_cmd=settings.dead_cmd,
            webhook_url=settings.webhook_url,
            action_timeout=settings.action_timeout,
            targets=settings.target_list,
        )

    async def on_alive(self) -> None:
        await self._dispatch(Verdict.ALIVE)

    async def on_dead(self) -> None:
        await self._dispatch(Verdict.DEAD)

    async def _dispatch(self, verdict: Verdict) -> None:
        results: List[Tuple[str, bool]] = []

        command = self.commands[verdict]
        if command:
            ok = await run_command(command, timeout=self.action_timeout)
            results.append(("command", ok))
        else:
            logger.debug("No %s command configured, skipping", verdict.value)

        if self.webhook_url:
            ok = await send_verdict_webhook(self.webhook_url, verdict, self.targets)
            results.append(("webhook", ok))

        for name, success in results:
            if success:
                notifications_sent_total.labels(channel=name, type=verdict.value).inc()
            else:
                notifications_failed_total.labels(channel=name, type=verdict.value).inc()

        failed = [name for name, success in results if not success]
        if failed:
            logger.warning("Actions failed for %s verdict: %s", verdict.value, ", ".join(failed))
