"""
Typed messages for the Hermes trace pipeline.

Frames flow through the FrameQueue; decoded trace events flow from the
DecodeStage to the BroadcastRegistry. Field names in ``to_message()``
match the ones the hermes frontend reads.
"""
import json
import time
import uuid
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, Tuple


class TraceType(IntEnum):
    """Leading type tag of every trace record."""
    ENTER = 0
    EXIT = 1
    PANIC = 2


# ─── Pipeline Messages (flow through the FrameQueue) ─────────────────────

@dataclass(frozen=True)
class Frame:
    """One sentinel-stripped record read from the transport."""
    payload: bytes
    received_at: float = field(default_factory=time.time)
    source: str = "unknown"  # "serial" or "udp"
    packet_id: str = field(default_factory=lambda: uuid.uuid4().hex)


# ─── Decoded Trace Events (fanned out to subscribers) ────────────────────

@dataclass(frozen=True)
class TraceHeader:
    """Common prefix of every decoded record."""
    trace_type: TraceType
    core_id: int
    timestamp: int
    trace_id: int

    def to_message(self) -> Dict[str, Any]:
        return {
            'traceType': int(self.trace_type),
            'coreId': self.core_id,
            'timestamp': self.timestamp,
            'traceId': self.trace_id,
        }


@dataclass(frozen=True)
class TraceEvent:
    """Base for decoded events; subclasses add the variant's fields."""
    header: TraceHeader
    packet_id: str

    @property
    def trace_type(self) -> TraceType:
        return self.header.trace_type

    def _fields(self) -> Dict[str, Any]:
        return {}

    def to_message(self) -> Dict[str, Any]:
        message = self.header.to_message()
        message.update(self._fields())
        message['packetId'] = self.packet_id
        return message

    def to_json(self) -> str:
        return json.dumps(self.to_message())


@dataclass(frozen=True)
class EnterEvent(TraceEvent):
    """A traced function was entered."""
    value_types: int
    arg_count: int
    func_args: Tuple[int, ...]
    func_name: str

    def _fields(self) -> Dict[str, Any]:
        return {
            'valueTypes': self.value_types,
            'argCount': self.arg_count,
            'funcArgs': list(self.func_args),
            'funcName': self.func_name,
        }


@dataclass(frozen=True)
class ExitEvent(TraceEvent):
    """A traced function returned."""
    value_types: int
    return_val: int
    func_name: str

    def _fields(self) -> Dict[str, Any]:
        return {
            'valueTypes': self.value_types,
            'returnVal': self.return_val,
            'funcName': self.func_name,
        }


@dataclass(frozen=True)
class PanicEvent(TraceEvent):
    """The target faulted."""
    faulting_pc: int
    exception_reason: str

    def _fields(self) -> Dict[str, Any]:
        return {
            'faultingPC': self.faulting_pc,
            'exceptionReason': self.exception_reason,
        }
