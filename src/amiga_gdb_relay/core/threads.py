"""Registry of the stub's threads."""

import logging

from amiga_gdb_relay.core.exceptions import ThreadNotFoundError
from amiga_gdb_relay.models.gdb import (
    DEFAULT_PROCESS_ID,
    GdbThread,
    SysThreadId,
    ThreadKind,
)

logger = logging.getLogger(__name__)


def parse_thread_id(text: str, default_process_id: int = DEFAULT_PROCESS_ID) -> GdbThread:
    """Parse a thread-id such as ``p01.0f`` or ``0f``.

    Raises:
        ValueError: If the text is not a thread-id
    """
    text = text.strip()
    if text.startswith("p"):
        process_part, _, thread_part = text[1:].partition(".")
        process_id = int(process_part, 16)
        thread_id = int(thread_part, 16) if thread_part else int(SysThreadId.CPU)
    else:
        process_id = default_process_id
        thread_id = int(text, 16)
    return GdbThread(process_id=process_id, thread_id=thread_id)


def format_thread_id(thread: GdbThread, multiprocess: bool = True) -> str:
    """Format a thread-spec for ``vCont`` and ``H`` packets."""
    if multiprocess:
        return f"p{thread.process_id:x}.{thread.thread_id:x}"
    return f"{thread.thread_id:x}"


class ThreadRegistry:
    """Threads keyed by (process id, thread id).

    The current thread of each kind is a key into the registry, re-resolved
    whenever a stop event names a thread.
    """

    def __init__(self, default_process_id: int = DEFAULT_PROCESS_ID):
        self.default_process_id = default_process_id
        self._threads: dict[tuple[int, int], GdbThread] = {}
        self._current: dict[ThreadKind, tuple[int, int]] = {}

    def clear(self) -> None:
        self._threads.clear()
        self._current.clear()

    def add(self, thread: GdbThread) -> GdbThread:
        """Register a thread, returning the registered instance."""
        existing = self._threads.get(thread.key)
        if existing is not None:
            return existing
        self._threads[thread.key] = thread
        logger.debug(f"Thread registered: {thread.name} p{thread.process_id:x}.{thread.thread_id:x}")
        return thread

    def add_from_id(self, text: str) -> GdbThread:
        return self.add(parse_thread_id(text, self.default_process_id))

    def get(self, process_id: int, thread_id: int) -> GdbThread | None:
        return self._threads.get((process_id, thread_id))

    def resolve(self, thread: GdbThread) -> GdbThread:
        """Return the registered thread equal to ``thread``.

        Raises:
            ThreadNotFoundError: If the thread is unknown
        """
        found = self._threads.get(thread.key)
        if found is None:
            raise ThreadNotFoundError(format_thread_id(thread))
        return found

    def find(self, thread_id: int) -> GdbThread | None:
        """Find a thread by thread id, whatever its process."""
        for thread in self._threads.values():
            if thread.thread_id == thread_id:
                return thread
        return None

    def __contains__(self, thread: object) -> bool:
        return isinstance(thread, GdbThread) and thread.key in self._threads

    def __len__(self) -> int:
        return len(self._threads)

    @property
    def threads(self) -> list[GdbThread]:
        return list(self._threads.values())

    def set_current(self, thread: GdbThread) -> GdbThread:
        """Make ``thread`` the current thread of its kind."""
        registered = self.add(thread)
        self._current[registered.kind] = registered.key
        return registered

    def current(self, kind: ThreadKind) -> GdbThread | None:
        """Current thread of a kind, or the first registered one."""
        key = self._current.get(kind)
        if key is not None and key in self._threads:
            return self._threads[key]
        for thread in self._threads.values():
            if thread.kind == kind:
                return thread
        return None

    @property
    def current_cpu_thread(self) -> GdbThread | None:
        return self.current(ThreadKind.CPU)

    def from_sys_thread_id(self, sys_thread_id: SysThreadId) -> GdbThread | None:
        return self.find(int(sys_thread_id))
