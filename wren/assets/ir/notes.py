from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import ClassVar, Tuple, Union

from wren.assets.serializer import BinaryReader, BinaryWriter
from wren.assets.types import AssetMemoryUsage, AssetType
from wren.errors import DeserializationError


class _EventTag(enum.IntEnum):
    NOTE_ON = 0
    NOTE_OFF = 1
    IDLE = 2


@dataclass(frozen=True)
class NoteOn:
    channel: int
    note: int
    velocity: int


@dataclass(frozen=True)
class NoteOff:
    channel: int
    note: int


@dataclass(frozen=True)
class Idle:
    ms: float


NoteEvent = Union[NoteOn, NoteOff, Idle]

# tag + widest payload
_EVENT_SIZE = 5


@dataclass(frozen=True)
class IRNotes:
    KIND: ClassVar[AssetType] = AssetType.NOTES

    events: Tuple[NoteEvent, ...] = ()

    def memory_usage(self) -> AssetMemoryUsage:
        return AssetMemoryUsage(ram=len(self.events) * _EVENT_SIZE)

    def write(self, w: BinaryWriter) -> None:
        w.u32(len(self.events))
        for event in self.events:
            if isinstance(event, NoteOn):
                w.u8(_EventTag.NOTE_ON)
                w.u8(event.channel)
                w.u8(event.note)
                w.u8(event.velocity)
            elif isinstance(event, NoteOff):
                w.u8(_EventTag.NOTE_OFF)
                w.u8(event.channel)
                w.u8(event.note)
            else:
                w.u8(_EventTag.IDLE)
                w.f32(event.ms)

    @classmethod
    def read(cls, r: BinaryReader) -> IRNotes:
        events = []
        for _ in range(r.u32()):
            tag = r.enum(_EventTag)
            if tag == _EventTag.NOTE_ON:
                events.append(NoteOn(r.u8(), r.u8(), r.u8()))
            elif tag == _EventTag.NOTE_OFF:
                events.append(NoteOff(r.u8(), r.u8()))
            elif tag == _EventTag.IDLE:
                events.append(Idle(r.f32()))
            else:
                raise DeserializationError(f"Unhandled note event {tag}")
        return cls(events=tuple(events))
