from typing import Optional
import logging
from tqdm import tqdm
import time

class ProgressMonitor:
    """Progress bar over window fits that keeps a running failure count"""

    def __init__(self, total: int, desc: str = "Rolling GARCH",
                 logger: Optional[logging.Logger] = None,
                 log_every: int = 100):
        self.logger = logger or logging.getLogger('progress')
        self.pbar = tqdm(total=total, desc=desc, unit='window', leave=False)
        self.total = total
        self.completed = 0
        self.failed = 0
        self.log_every = log_every
        self.start_time = time.time()
        self.description = desc

    @property
    def failure_rate(self) -> float:
        return self.failed / self.completed if self.completed else 0.0

    def update(self, fit=None):
        """Record one finished window; fit is a WindowFit or None"""
        self.completed += 1
        self.pbar.update(1)

        if fit is not None and not fit.converged:
            self.failed += 1
            self.pbar.set_postfix(failed=self.failed)

        if self.log_every and self.completed % self.log_every == 0:
            elapsed = time.time() - self.start_time
            rate = self.completed / elapsed if elapsed > 0 else 0.0
            eta = (self.total - self.completed) / rate if rate > 0 else 0.0

            self.logger.info(
                f"Windows: {self.completed}/{self.total} "
                f"({self.completed / self.total * 100:.1f}%) - "
                f"failed: {self.failed} - "
                f"{rate:.1f} fits/s - ETA: {eta:.1f}s"
            )

    def close(self):
        """Close progress bar and log final window counts"""
        self.pbar.close()
        total_time = time.time() - self.start_time
        self.logger.info(
            f"{self.description}: fitted {self.completed}/{self.total} windows "
            f"({self.failed} failed) in {total_time:.1f} seconds"
        )
