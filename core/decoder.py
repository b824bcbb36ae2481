"""
Trace record decoder.

Every record layout is an explicit binary schema of (field, dtype, byte
offset) compiled into a numpy structured dtype with fixed ``offsets`` and
``itemsize``. All multi-byte integers are little-endian. Nothing depends
on host byte order or on how any compiler would align a struct.

Header (shared by every record)::

    0   trace_type   <u4
    4   core_id      u1     (5..7 padding)
    8   timestamp    <u4
    12  trace_id     <u4

ENTER::

    16  value_types  u1
    17  arg_count    u1     (18..19 padding)
    20  func_args    4 x <u4
    36  func_name    16 bytes, NUL padded

EXIT::

    16  value_types  u1     (17..19 padding)
    20  return_val   <u4    (24..35 padding)
    36  func_name    16 bytes, NUL padded

PANIC::

    16  faulting_pc       <u4
    20  exception_reason  48 bytes, NUL padded
"""
from dataclasses import dataclass
from typing import Dict, List, Sequence

import numpy as np

from core.events import (
    Frame, TraceType, TraceHeader, TraceEvent,
    EnterEvent, ExitEvent, PanicEvent,
)
from utils.failures import DecodeError, UnknownRecordTypeError

TYPE_TAG = np.dtype('<u4')
MAX_FUNC_ARGS = 4


@dataclass(frozen=True)
class FieldSpec:
    name: str
    dtype: str
    offset: int

    @property
    def end(self) -> int:
        return self.offset + np.dtype(self.dtype).itemsize


HEADER_FIELDS = [
    FieldSpec('trace_type', '<u4', 0),
    FieldSpec('core_id', 'u1', 4),
    FieldSpec('timestamp', '<u4', 8),
    FieldSpec('trace_id', '<u4', 12),
]


class RecordLayout:
    """A fixed binary record layout, possibly ending in padding."""

    def __init__(self, name: str, fields: Sequence[FieldSpec], size: int):
        self.name = name
        self.fields: List[FieldSpec] = list(fields)
        self.size = size
        # Bytes past the last field are padding and may be missing from a short frame
        self.required_size = max(f.end for f in self.fields)
        if self.required_size > size:
            raise ValueError(f"Layout {name} fields overrun its {size}-byte size")

        self.dtype = np.dtype({
            'names': [f.name for f in self.fields],
            'formats': [f.dtype for f in self.fields],
            'offsets': [f.offset for f in self.fields],
            'itemsize': size,
        })

    def parse(self, payload: bytes) -> np.void:
        """Read exactly one record from the start of ``payload``."""
        if len(payload) < self.required_size:
            raise DecodeError(
                f"{self.name} record needs {self.required_size} bytes, frame has {len(payload)}"
            )
        if len(payload) < self.size:
            payload = bytes(payload) + bytes(self.size - len(payload))
        return np.frombuffer(payload, dtype=self.dtype, count=1)[0]


ENTER_LAYOUT = RecordLayout('ENTER', HEADER_FIELDS + [
    FieldSpec('value_types', 'u1', 16),
    FieldSpec('arg_count', 'u1', 17),
    FieldSpec('func_args', f'({MAX_FUNC_ARGS},)<u4', 20),
    FieldSpec('func_name', 'S16', 36),
], size=52)

EXIT_LAYOUT = RecordLayout('EXIT', HEADER_FIELDS + [
    FieldSpec('value_types', 'u1', 16),
    FieldSpec('return_val', '<u4', 20),
    FieldSpec('func_name', 'S16', 36),
], size=52)

PANIC_LAYOUT = RecordLayout('PANIC', HEADER_FIELDS + [
    FieldSpec('faulting_pc', '<u4', 16),
    FieldSpec('exception_reason', 'S48', 20),
], size=68)

LAYOUTS: Dict[TraceType, RecordLayout] = {
    TraceType.ENTER: ENTER_LAYOUT,
    TraceType.EXIT: EXIT_LAYOUT,
    TraceType.PANIC: PANIC_LAYOUT,
}


def read_type_tag(payload: bytes) -> int:
    """Compose the first four bytes into an unsigned little-endian integer."""
    if len(payload) < TYPE_TAG.itemsize:
        raise DecodeError(f"Frame too short for a type tag ({len(payload)} bytes)")
    return int(np.frombuffer(payload, dtype=TYPE_TAG, count=1)[0])


def decode_text(raw: bytes) -> str:
    """Fixed-width C string: keep everything before the first NUL."""
    return bytes(raw).split(b'\x00', 1)[0].decode('utf-8', errors='replace')


class TraceDecoder:
    """Demultiplexes frames into Enter/Exit/Panic events by type tag."""

    def decode(self, frame: Frame) -> TraceEvent:
        """
        Decode one frame.

        Raises:
            UnknownRecordTypeError: the type tag matches no layout.
            DecodeError: the frame is too short for its layout.
        """
        tag = read_type_tag(frame.payload)
        try:
            trace_type = TraceType(tag)
        except ValueError:
            raise UnknownRecordTypeError(tag) from None

        record = LAYOUTS[trace_type].parse(frame.payload)
        header = TraceHeader(
            trace_type=trace_type,
            core_id=int(record['core_id']),
            timestamp=int(record['timestamp']),
            trace_id=int(record['trace_id']),
        )

        if trace_type is TraceType.ENTER:
            arg_count = int(record['arg_count'])
            args = record['func_args'][:min(arg_count, MAX_FUNC_ARGS)]
            return EnterEvent(
                header=header,
                packet_id=frame.packet_id,
                value_types=int(record['value_types']),
                arg_count=arg_count,
                func_args=tuple(int(a) for a in args),
                func_name=decode_text(record['func_name']),
            )

        if trace_type is TraceType.EXIT:
            return ExitEvent(
                header=header,
                packet_id=frame.packet_id,
                value_types=int(record['value_types']),
                return_val=int(record['return_val']),
                func_name=decode_text(record['func_name']),
            )

        return PanicEvent(
            header=header,
            packet_id=frame.packet_id,
            faulting_pc=int(record['faulting_pc']),
            exception_reason=decode_text(record['exception_reason']),
        )
