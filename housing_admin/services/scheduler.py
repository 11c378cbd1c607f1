import threading
from typing import Callable, Optional

import structlog

from ..baas.provider import BaaSError, BaaSProvider
from ..config import settings
from .checkout import auto_complete_expired


logger = structlog.get_logger(__name__)


class CheckoutSweeper:
    """Background thread that closes approved checkout requests once their end date passes."""

    def __init__(self, baas_factory: Callable[[], BaaSProvider], interval_s: Optional[int] = None):
        self._baas_factory = baas_factory
        self.interval_s = interval_s or settings.checkout_sweep_interval_s
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def run_once(self) -> int:
        try:
            return auto_complete_expired(self._baas_factory())
        except BaaSError as e:
            logger.warning("checkout_sweep_failed", code=e.code, error=e.message)
            return 0

    def _loop(self) -> None:
        logger.info("checkout_sweep_started", interval_s=self.interval_s)
        while not self._stop.wait(self.interval_s):
            self.run_once()
        logger.info("checkout_sweep_stopped")

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="checkout-sweep", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout)
            self._thread = None

    @property
    def running(self) -> bool:
        return bool(self._thread and self._thread.is_alive())
