"""Parsers for RSP reply payloads."""

import re

from amiga_gdb_relay.core.threads import parse_thread_id
from amiga_gdb_relay.models.gdb import DEFAULT_PROCESS_ID, Capabilities, HaltStatus, Segment

_ERROR_RE = re.compile(r"^E[0-9a-fA-F]{2}$")
# "S05", "S5;0", "T05;thread:...", "T05thread:..."
_STOP_RE = re.compile(r"^([ST])([0-9a-fA-F]{2}|[0-9a-fA-F](?=;|$))(.*)$", re.DOTALL)
_EXIT_RE = re.compile(r"^W([0-9a-fA-F]{2})(?:;(.*))?$")
_REGISTER_KEY_RE = re.compile(r"^[0-9a-fA-F]+$")

STOP_REASONS = frozenset(
    {"watch", "rwatch", "awatch", "swbreak", "hwbreak", "library", "replaylog", "exec", "fork"}
)


def is_error_reply(reply: str) -> bool:
    return bool(_ERROR_RE.match(reply))


def is_stop_reply(reply: str) -> bool:
    """Check whether a payload follows the stop-reply grammar."""
    return bool(_STOP_RE.match(reply) or _EXIT_RE.match(reply))


def parse_stop_reply(reply: str, default_process_id: int = DEFAULT_PROCESS_ID) -> HaltStatus | None:
    """Parse a stop reply, ``None`` if the payload is not one."""
    match = _EXIT_RE.match(reply)
    if match:
        return HaltStatus(code=int(match.group(1), 16), exited=True, reason="exited")

    match = _STOP_RE.match(reply)
    if match is None:
        return None

    status = HaltStatus(code=int(match.group(2), 16))
    for field in match.group(3).split(";"):
        key, sep, value = field.partition(":")
        if not sep:
            continue
        if key == "thread":
            status.thread = parse_thread_id(value, default_process_id)
        elif key in STOP_REASONS:
            status.reason = key
            if value:
                status.details[key] = value
        elif _REGISTER_KEY_RE.match(key):
            try:
                status.registers[int(key, 16)] = int(value, 16)
            except ValueError:
                status.details[key] = value
        else:
            status.details[key] = value
    return status


def parse_capabilities(reply: str) -> Capabilities:
    """Parse a ``qSupported`` reply."""
    features: dict[str, str] = {}
    for item in reply.split(";"):
        item = item.strip()
        if not item:
            continue
        if "=" in item:
            name, _, value = item.partition("=")
            features[name] = value
        elif item[-1] in "+-?":
            features[item[:-1]] = item[-1]
        else:
            features[item] = ""
    return Capabilities(
        multiprocess=features.get("multiprocess") == "+",
        vcont=features.get("vContSupported") == "+",
        no_ack_mode=features.get("QStartNoAckMode") == "+",
        non_stop=features.get("QNonStop") == "+",
        features=features,
    )


def parse_segments(reply: str) -> list[Segment]:
    """Parse a ``qOffsets`` reply such as ``TextSeg=aef;DataSeg=1000``."""
    segments: list[Segment] = []
    for item in reply.split(";"):
        name, sep, value = item.partition("=")
        if not sep:
            continue
        segments.append(Segment(id=len(segments), name=name.strip(), address=int(value, 16)))
    return segments


def parse_thread_list(reply: str) -> tuple[list[str], bool]:
    """Parse a ``qfThreadInfo``/``qsThreadInfo`` reply.

    Returns:
        Thread-id strings, and whether the list is complete
    """
    if reply.startswith("l"):
        return [], True
    if not reply.startswith("m"):
        raise ValueError(f"Not a thread list: {reply!r}")
    ids: list[str] = []
    done = False
    for item in reply[1:].split(","):
        item = item.strip()
        if item == "l":
            done = True
        elif item:
            ids.append(item)
    return ids, done
