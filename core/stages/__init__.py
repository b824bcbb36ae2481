"""
Pipeline stages for the Hermes trace reader.

The trace pipeline is modeled as two independent stages connected by a
bounded queue:

    IngestStage → [frame_queue] → DecodeStage → BroadcastRegistry

Each stage runs in its own thread. The bounded queue provides
backpressure: if decoding is slow, reading from the transport blocks.
"""
from .ingest import IngestStage
from .decode import DecodeStage

__all__ = ["IngestStage", "DecodeStage"]
