"""
Core module for the Hermes trace reader pipeline.

Contains frame synchronization, the bounded frame queue, the binary
trace decoder, the subscriber broadcast registry, typed events and
protocol definitions (interfaces) for transports and subscribers.
"""
