"""
Change notification for the schedule engine.

Services that write schedules call :meth:`ReloadSignal.publish`; the engine
holds a :class:`ReloadSubscription` and wakes up when the version moves.
Only the latest version is kept: publishes that land while the engine is busy
coalesce into one wake-up, so a subscriber sees at least one change per burst
but not necessarily one per publish.
"""

from __future__ import annotations

import asyncio

from lobbycord.errors import ReloadSignalClosed


class ReloadSignal:
    """Single-slot, overwrite-on-publish broadcast of a version counter."""

    def __init__(self) -> None:
        self._version = 0
        self._changed = asyncio.Event()
        self._closed = False

    @property
    def version(self) -> int:
        return self._version

    @property
    def closed(self) -> bool:
        return self._closed

    def publish(self) -> int:
        """
        Announce a change and return the new version. Never blocks.

        Raises:
            ReloadSignalClosed: If the signal was closed.
        """
        if self._closed:
            raise ReloadSignalClosed("reload signal is closed")
        self._version += 1
        waiting, self._changed = self._changed, asyncio.Event()
        waiting.set()
        return self._version

    def close(self) -> None:
        """Wake every subscriber; those with nothing unseen get :class:`ReloadSignalClosed`."""
        self._closed = True
        self._changed.set()

    def subscribe(self) -> "ReloadSubscription":
        """A subscription that has already seen the current version."""
        return ReloadSubscription(self)


class ReloadSubscription:
    def __init__(self, signal: ReloadSignal) -> None:
        self._signal = signal
        self._seen = signal.version

    def has_changed(self) -> bool:
        return self._signal.version != self._seen

    def mark_seen(self) -> None:
        self._seen = self._signal.version

    async def changed(self) -> int:
        """
        Wait until the version differs from the last one seen, then return it.

        Returns immediately if a publish happened since the previous call.
        Cancelling the wait loses nothing.

        Raises:
            ReloadSignalClosed: If the signal is closed and nothing unseen remains.
        """
        while True:
            if self._signal.version != self._seen:
                self._seen = self._signal.version
                return self._seen
            if self._signal.closed:
                raise ReloadSignalClosed("reload signal is closed")
            await self._signal._changed.wait()
