"""Tests for the serial, UDP and subscriber-server handlers."""

import json
import socket

import pytest
import serial
from websockets.exceptions import InvalidStatus
from websockets.sync.client import connect

from builders import wait_until
from core.events import PanicEvent, TraceHeader, TraceType
from core.protocols import ByteSource
from Handlers import Serial_Handler
from Handlers.Serial_Handler import SerialHandler
from Handlers.Subscriber_Server_Handler import SubscriberServer
from Handlers.UDP_Handler import UDPHandler


class FakeSerialPort:
    """Stands in for serial.Serial."""

    instances = []

    def __init__(self, port, baudrate, timeout):
        self.port = port
        self.baudrate = baudrate
        self.timeout = timeout
        self.reset_called = False
        self.closed = False
        self.data = bytearray(b"\r\nabc")
        FakeSerialPort.instances.append(self)

    def reset_input_buffer(self):
        self.reset_called = True

    def read(self, size):
        chunk = bytes(self.data[:size])
        del self.data[:size]
        return chunk

    def close(self):
        self.closed = True


class TestSerialHandler:

    def test_implements_byte_source(self):
        assert isinstance(SerialHandler("/dev/null"), ByteSource)

    def test_open_resets_input_and_reads(self, monkeypatch):
        monkeypatch.setattr(Serial_Handler.serial, "Serial", FakeSerialPort)
        handler = SerialHandler("/dev/ttyUSB0", baud_rate=921600, timeout=0.1)

        assert handler.start() is True
        port = FakeSerialPort.instances[-1]
        assert (port.port, port.baudrate, port.timeout) == ("/dev/ttyUSB0", 921600, 0.1)
        assert port.reset_called

        assert handler.read(2) == b"\r\n"
        assert handler.read(10) == b"abc"

        handler.stop()
        assert port.closed

    def test_open_failure_returns_false(self, monkeypatch):
        def refuse(**kwargs):
            raise serial.SerialException("could not open port")

        monkeypatch.setattr(Serial_Handler.serial, "Serial", refuse)
        handler = SerialHandler("/dev/ttyUSB9")

        assert handler.start() is False
        assert handler.port is None

    def test_read_before_open_raises_os_error(self):
        with pytest.raises(OSError):
            SerialHandler("/dev/ttyUSB0").read(1)


@pytest.fixture
def udp_handler():
    handler = UDPHandler(port=0, host="127.0.0.1", timeout=0.1)
    assert handler.start()
    yield handler
    handler.stop()


class TestUDPHandler:

    def send(self, handler, data):
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sender:
            sender.sendto(data, ("127.0.0.1", handler.bound_port))

    def test_datagram_is_read_in_pieces(self, udp_handler):
        self.send(udp_handler, b"0123456789")

        assert udp_handler.read(4) == b"0123"
        assert udp_handler.read(100) == b"456789"
        assert udp_handler.datagrams_received == 1

    def test_consecutive_datagrams_form_one_stream(self, udp_handler):
        self.send(udp_handler, b"ab")
        self.send(udp_handler, b"cd")

        data = b""
        for _ in range(10):
            data += udp_handler.read(4)
            if len(data) == 4:
                break
        assert data == b"abcd"

    def test_timeout_returns_empty(self, udp_handler):
        assert udp_handler.read(10) == b""

    def test_read_after_stop_raises(self):
        handler = UDPHandler(port=0, host="127.0.0.1", timeout=0.1)
        assert handler.start()
        handler.stop()
        with pytest.raises(OSError):
            handler.read(1)


@pytest.fixture
def subscriber_server(registry):
    server = SubscriberServer(registry, host="127.0.0.1", port=0, path="/data")
    assert server.start()
    yield server
    server.stop()
    registry.close_all()


def panic_event():
    return PanicEvent(
        header=TraceHeader(trace_type=TraceType.PANIC, core_id=1, timestamp=77, trace_id=4),
        packet_id="p1",
        faulting_pc=0x40001000,
        exception_reason="Cache disabled but cached memory region accessed",
    )


class TestSubscriberServer:

    def url(self, server, path="/data"):
        return f"ws://127.0.0.1:{server.bound_port}{path}"

    def test_subscriber_receives_broadcast(self, subscriber_server, registry):
        with connect(self.url(subscriber_server)) as client:
            assert wait_until(lambda: registry.connection_count() == 1)
            assert registry.broadcast(panic_event()) == 1

            message = json.loads(client.recv(timeout=2.0))
            assert message['traceType'] == 2
            assert message['faultingPC'] == 0x40001000
            assert message['packetId'] == "p1"

    def test_client_messages_are_ignored(self, subscriber_server, registry):
        with connect(self.url(subscriber_server)) as client:
            assert wait_until(lambda: registry.connection_count() == 1)
            client.send("hello")
            assert registry.broadcast(panic_event()) == 1
            assert json.loads(client.recv(timeout=2.0))['traceId'] == 4

    def test_disconnect_unregisters(self, subscriber_server, registry):
        client = connect(self.url(subscriber_server))
        assert wait_until(lambda: registry.connection_count() == 1)

        client.close()
        assert wait_until(lambda: registry.connection_count() == 0)

    def test_other_paths_are_refused(self, subscriber_server, registry):
        with pytest.raises(InvalidStatus):
            connect(self.url(subscriber_server, "/other"))
        assert registry.connection_count() == 0
