import socket

import pytest

from spark_proxy.errors import PortBindError
from spark_proxy.port_allocator import allocate


@pytest.fixture
def occupied_port():
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    sock.listen(1)
    yield sock.getsockname()[1]
    sock.close()


def test_free_base_port_is_used():
    probe = allocate(0, "127.0.0.1")
    port = probe.getsockname()[1]
    probe.close()

    sock = allocate(port, "127.0.0.1")
    try:
        assert sock.getsockname()[1] == port
    finally:
        sock.close()


def test_occupied_base_port_moves_up_and_holds_the_socket(occupied_port):
    sock = allocate(occupied_port, "127.0.0.1")
    try:
        port = sock.getsockname()[1]
        assert port > occupied_port

        # Already listening: clients can connect without any rebind.
        with socket.create_connection(("127.0.0.1", port), timeout=2):
            pass

        # And nobody else can grab it.
        other = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        with pytest.raises(OSError):
            other.bind(("127.0.0.1", port))
        other.close()
    finally:
        sock.close()


def test_exhausted_range_is_fatal(occupied_port):
    with pytest.raises(PortBindError):
        allocate(occupied_port, "127.0.0.1", max_port=occupied_port)


def test_non_address_in_use_errors_are_fatal():
    with pytest.raises(PortBindError):
        allocate(3001, "256.0.0.1")


@pytest.mark.parametrize("port", [-1, 70000])
def test_out_of_range_base_port(port):
    with pytest.raises(PortBindError):
        allocate(port, "127.0.0.1")
