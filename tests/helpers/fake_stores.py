"""Array stores that misbehave on purpose, for failure-path tests."""

import threading
import time

import numpy as np

from blockstat.stores.memory import InMemoryArrayStore


class FailingReadStore(InMemoryArrayStore):
    """Raises IOError when a read touches ``fail_row``."""

    def __init__(self, data, fail_row, nodata=None):
        super().__init__(data, nodata=nodata)
        self.fail_row = fail_row

    def read_rows(self, start_row, row_count):
        if start_row <= self.fail_row < start_row + row_count:
            raise IOError("disk failure")
        return super().read_rows(start_row, row_count)


class FailingWriteStore(InMemoryArrayStore):
    """Raises IOError when a write touches ``fail_row``."""

    def __init__(self, data, fail_row, nodata=None):
        super().__init__(data, nodata=nodata)
        self.fail_row = fail_row

    def write_rows(self, start_row, block):
        if start_row <= self.fail_row < start_row + block.shape[0]:
            raise IOError("disk full")
        super().write_rows(start_row, block)


class ShortReadStore(InMemoryArrayStore):
    """Returns one row fewer than requested."""

    def read_rows(self, start_row, row_count):
        return super().read_rows(start_row, row_count)[:-1]


class CancellingStore(InMemoryArrayStore):
    """Cancels ``reducer`` during the read of the block starting at ``cancel_at``."""

    def __init__(self, data, reducer, cancel_at=0):
        super().__init__(data)
        self.reducer = reducer
        self.cancel_at = cancel_at
        self.reads = []

    def read_rows(self, start_row, row_count):
        self.reads.append((start_row, row_count))
        if start_row == self.cancel_at:
            self.reducer.cancel()
        return super().read_rows(start_row, row_count)


class RecordingStore(InMemoryArrayStore):
    """Records the order of writes."""

    def __init__(self, data, nodata=None):
        super().__init__(data, nodata=nodata)
        self.writes = []

    def write_rows(self, start_row, block):
        self.writes.append((start_row, int(np.asarray(block).shape[0])))
        super().write_rows(start_row, block)


class InFlightCounter:
    """Rows read but not yet written, shared by a tracking input and output."""

    def __init__(self):
        self._lock = threading.Lock()
        self.rows = 0
        self.peak = 0

    def add(self, row_count):
        with self._lock:
            self.rows += row_count
            self.peak = max(self.peak, self.rows)

    def remove(self, row_count):
        with self._lock:
            self.rows -= row_count


class TrackingReadStore(InMemoryArrayStore):
    """Counts rows into ``counter`` on read and holds them for ``delay`` seconds."""

    def __init__(self, data, counter, delay=0.02):
        super().__init__(data)
        self.counter = counter
        self.delay = delay

    def read_rows(self, start_row, row_count):
        self.counter.add(row_count)
        time.sleep(self.delay)
        return super().read_rows(start_row, row_count)


class TrackingWriteStore(InMemoryArrayStore):
    """Releases rows from ``counter`` once they are written."""

    def __init__(self, data, counter):
        super().__init__(data)
        self.counter = counter

    def write_rows(self, start_row, block):
        super().write_rows(start_row, block)
        self.counter.remove(block.shape[0])
