import logging
import threading

from rollcall.transports._base import SnapshotCallback, Unsubscribe
from rollcall.transports._registry import register
from rollcall.transports.remote import RemoteDocument

logger = logging.getLogger(__name__)


@register
class PollingTransport(RemoteDocument):
    """
    Remote document watched by re-reading it on a fixed interval.

    Each subscription runs its own timer thread. A failed read skips that tick
    and the next tick tries again.
    """

    def __init__(self, *args, poll_interval: float = 5.0, **kwargs):
        super().__init__(*args, **kwargs)
        self.poll_interval = poll_interval
        self._stoppers: list[Unsubscribe] = []

    @classmethod
    def from_config(cls, config):
        return cls(
            config.remote_url,
            poll_interval=config.poll_interval,
            **cls._remote_kwargs(config),
        )

    def tick(self, callback: SnapshotCallback) -> bool:
        """
        Runs one poll.

        Returns:
            bool: True if a snapshot was handed to `callback`.
        """
        snapshot = self.pull()
        if snapshot is None:
            logger.debug("Poll of %s returned nothing; skipping tick", self.document_url)
            return False
        callback(snapshot)
        return True

    def _poll_loop(self, callback: SnapshotCallback, stop: threading.Event) -> None:
        while not stop.wait(self.poll_interval):
            self.tick(callback)

    def subscribe(self, callback: SnapshotCallback) -> Unsubscribe:
        stop = threading.Event()
        thread = threading.Thread(
            target=self._poll_loop,
            args=(callback, stop),
            name="rollcall-poll",
            daemon=True,
        )
        thread.start()
        logger.info("Polling %s every %ss", self.document_url, self.poll_interval)

        def unsubscribe() -> None:
            stop.set()
            if thread is not threading.current_thread():
                thread.join(timeout=self.timeout + self.poll_interval)
            if unsubscribe in self._stoppers:
                self._stoppers.remove(unsubscribe)

        self._stoppers.append(unsubscribe)
        return unsubscribe

    def close(self) -> None:
        for unsubscribe in list(self._stoppers):
            unsubscribe()
        super().close()
