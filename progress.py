import gc
import os
from typing import Callable, Optional

import psutil
from tqdm import tqdm

# Row tracks accumulate in memory until the final merge
MEMORY_WARNING_MB = 800


# =============================================================================
# Memory Monitoring
# =============================================================================

def get_memory_usage_mb() -> float:
    """Resident memory of this process in MB."""
    return psutil.Process(os.getpid()).memory_info().rss / (1024 * 1024)


def relieve_memory_pressure(log: Callable[[str], None],
                            threshold_mb: float = MEMORY_WARNING_MB) -> bool:
    """Collect garbage when usage is above ``threshold_mb``.

    Returns True if the threshold was exceeded.
    """
    usage = get_memory_usage_mb()
    if usage <= threshold_mb:
        return False
    log(f"Warning: high memory usage ({usage:.0f} MB)")
    gc.collect()
    return True


# =============================================================================
# Progress Reporting
# =============================================================================

class ProgressTracker:
    """Counts finished work items and reports them to tqdm or a callback.

    A callback takes ``(current, total, status)``; when one is given, or
    ``use_tqdm`` is False, no tqdm bar is drawn.
    """

    def __init__(self, total: int, desc: str = "",
                 callback: Optional[Callable[[int, int, str], None]] = None,
                 unit: str = "item",
                 use_tqdm: bool = True):
        self.total = total
        self.desc = desc
        self.callback = callback
        self.current = 0
        self._bar = None
        if use_tqdm and callback is None:
            self._bar = tqdm(total=total, desc=desc, unit=unit,
                             leave=False, dynamic_ncols=True)

    def update(self, n: int = 1, status: str = ""):
        self.current += n
        if self._bar is not None:
            self._bar.update(n)
            if status:
                self._bar.set_postfix_str(status)
        if self.callback:
            self.callback(self.current, self.total, status or self.desc)

    def close(self):
        if self._bar is not None:
            self._bar.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
