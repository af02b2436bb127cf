"""End-to-end tests against the fake processor over a real socket.

These tests run WITHOUT Home Assistant dependencies.
"""

import asyncio

import pytest

from hwqs_protocol import (
    HomeworksQSClient,
    HomeworksQSClientConfig,
    MonitorTarget,
    SessionState,
)
from hwqs_protocol.exceptions import HomeworksQSConnectionFailed
from hwqs_protocol.transport import HomeworksQSTransport

from fake_processor import FakeQSProcessor


async def wait_for(predicate, timeout=3.0):
    """Poll until predicate() is true."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Condition not met in time")
        await asyncio.sleep(0.01)


@pytest.fixture
async def processor():
    fake = FakeQSProcessor()
    fake.set_level("12", 50.0)
    await fake.start()
    yield fake
    await fake.stop()


@pytest.fixture
async def client(processor):
    client = HomeworksQSClient(
        HomeworksQSClientConfig(
            "127.0.0.1",
            port=processor.port,
            username="lutron",
            password="integration",
            reconnect_delay=0.1,
        )
    )
    yield client
    await client.stop()


@pytest.mark.asyncio
async def test_session_becomes_ready(processor, client):
    connected = []
    client.register_did_connect_callback(lambda: connected.append(True))
    client.start()

    await wait_for(lambda: client.is_ready)
    assert connected == [True]
    assert processor.received[:3] == ["lutron", "integration", "#MONITORING,5,1"]
    assert client.connected_at is not None


@pytest.mark.asyncio
async def test_initial_poll_reports_level(processor, client):
    updates = []
    client.register_receive_callback(updates.append)
    client.set_monitor_targets([MonitorTarget("12", "Kitchen")])
    client.start()

    await wait_for(lambda: updates)
    assert processor.count("?OUTPUT,12,1") == 1
    assert updates[0].device_id == "12"
    assert updates[0].value == 50.0


@pytest.mark.asyncio
async def test_set_level_echo(processor, client):
    updates = []
    client.register_receive_callback(updates.append)
    client.start()
    await wait_for(lambda: client.is_ready)

    assert client.set_level("14", 75, dimmable=True)
    await wait_for(lambda: updates)
    assert "#OUTPUT,14,1,75,00:01" in processor.received
    assert updates[0].device_id == "14"
    assert updates[0].value == 75.0
    assert processor.get_level("14") == 75.0


@pytest.mark.asyncio
async def test_unsolicited_update_dispatched(processor, client):
    updates = []
    client.register_receive_callback(updates.append)
    client.start()
    await wait_for(lambda: client.is_ready)

    await processor.broadcast(b"~OUTPUT,204,32,2,29.00\r\n")
    await wait_for(lambda: updates)
    assert updates[0].is_motion_stopped
    assert updates[0].value == 29.0


@pytest.mark.asyncio
async def test_reconnect_after_drop(processor, client):
    connects = []
    disconnects = []
    client.register_did_connect_callback(lambda: connects.append(True))
    client.register_disconnect_callback(lambda: disconnects.append(True))
    client.start()
    await wait_for(lambda: client.is_ready)

    await processor.simulate_disconnect()
    await wait_for(lambda: disconnects)
    await wait_for(lambda: len(connects) == 2)

    assert client.state is SessionState.READY
    assert client.reconnect_count == 1
    assert processor.connection_count == 2
    assert processor.count("#MONITORING,5,1") == 2


@pytest.mark.asyncio
async def test_bad_credentials_never_ready(processor):
    client = HomeworksQSClient(
        HomeworksQSClientConfig(
            "127.0.0.1",
            port=processor.port,
            username="lutron",
            password="wrong",
        )
    )
    client.start()
    try:
        await wait_for(lambda: processor.count("lutron") >= 2)
        assert client.state is SessionState.AUTHENTICATING
        assert "#MONITORING,5,1" not in processor.received
    finally:
        await client.stop()


@pytest.mark.asyncio
async def test_stop_closes_connection(processor, client):
    client.start()
    await wait_for(lambda: client.is_ready)

    await client.stop()
    assert client.state is SessionState.DISCONNECTED
    await asyncio.sleep(0.2)
    assert processor.connection_count == 1


@pytest.mark.asyncio
async def test_malformed_host_is_connect_failure():
    transport = HomeworksQSTransport("a..b", 23, connect_timeout=2.0)
    with pytest.raises(HomeworksQSConnectionFailed):
        await transport.connect()


@pytest.mark.asyncio
async def test_malformed_host_schedules_reconnect():
    client = HomeworksQSClient(
        HomeworksQSClientConfig("a..b", reconnect_delay=10.0, connect_timeout=2.0)
    )
    client.start()
    try:
        await wait_for(lambda: client.reconnect_pending)
        assert client.state is SessionState.DISCONNECTED
    finally:
        await client.stop()
