"""UDP transport over a real loopback socket, robot and camera faked."""

import asyncio

import pytest
import pytest_asyncio

from roomba_gateway.protocol import FRAME_BUFFER_ERROR, NO_RESPONSE
from roomba_gateway.udp_server import UdpServer
from roomba_remote.replies import ReplyKind
from roomba_remote.udp_client import UdpGatewayClient

from conftest import FAKE_JPEG


@pytest_asyncio.fixture
async def udp_gateway(dispatcher):
    broadcasts = []

    async def broadcast(payload: bytes) -> int:
        broadcasts.append(payload)
        return 1

    server = UdpServer(dispatcher, host="127.0.0.1", port=0, broadcast=broadcast)
    await server.start()
    host, port = server.local_address
    client = UdpGatewayClient(host, port)
    await client.start()
    try:
        yield server, client, broadcasts
    finally:
        await client.stop()
        await server.stop()


async def assert_silent(client, timeout=0.1):
    with pytest.raises(asyncio.TimeoutError):
        await client.next_reply(timeout=timeout)


@pytest.mark.asyncio
async def test_sensor_query_gets_ack_then_reply(udp_gateway):
    server, client, _ = udp_gateway

    client.send(bytes([142, 7]))

    ack = await client.next_reply()
    assert ack.kind is ReplyKind.ACK
    assert ack.data == b"ack\x02"

    reply = await client.next_reply()
    assert reply.data == bytes([7, 0x01, 0x02])
    assert reply.kind is ReplyKind.SENSOR_DATA
    assert reply.packet_id == 7

    await assert_silent(client)


@pytest.mark.asyncio
async def test_plain_command_gets_only_ack(udp_gateway, fake_link):
    server, client, _ = udp_gateway

    client.send(bytes([137, 0, 100, 128, 0]))

    ack = await client.next_reply()
    assert ack.data == b"ack\x05"
    await assert_silent(client)
    assert fake_link.writes == [bytes([137, 0, 100, 128, 0])]


@pytest.mark.asyncio
async def test_silent_robot_gives_sentinel(udp_gateway, fake_link):
    server, client, _ = udp_gateway
    fake_link.responses.clear()

    client.send(bytes([142, 7]))

    assert (await client.next_reply()).kind is ReplyKind.ACK
    reply = await client.next_reply()
    assert reply.kind is ReplyKind.NO_RESPONSE
    assert reply.data == NO_RESPONSE


@pytest.mark.asyncio
async def test_capture_goes_to_broadcast_not_sender(udp_gateway):
    server, client, broadcasts = udp_gateway

    client.send(bytes([200]))

    assert (await client.next_reply()).data == b"ack\x01"
    await assert_silent(client)
    assert broadcasts == [FAKE_JPEG]


@pytest.mark.asyncio
async def test_capture_failure_broadcasts_sentinel(udp_gateway, fake_camera):
    server, client, broadcasts = udp_gateway
    fake_camera.image = None

    client.send(bytes([200]))

    await client.next_reply()
    await server.protocol.wait_idle()
    assert broadcasts == [FRAME_BUFFER_ERROR]


@pytest.mark.asyncio
async def test_malformed_frame_is_acked_and_dropped(udp_gateway, fake_link):
    server, client, _ = udp_gateway

    client.send(bytes([201]))

    assert (await client.next_reply()).data == b"ack\x01"
    await assert_silent(client)
    assert fake_link.writes == []


@pytest.mark.asyncio
async def test_every_datagram_acked_before_its_reply(udp_gateway):
    server, client, _ = udp_gateway

    for packet_id in (1, 2, 3):
        client.send(bytes([142, packet_id]))

    kinds = []
    for _ in range(6):
        kinds.append((await client.next_reply()).kind)

    assert kinds.count(ReplyKind.ACK) == 3
    # a reply never precedes the first ack
    assert kinds[0] is ReplyKind.ACK
    assert server.get_stats()["datagrams"] == 3


@pytest.mark.asyncio
async def test_oversized_datagram_acks_truncated_length(udp_gateway, fake_link):
    server, client, _ = udp_gateway
    datagram = bytes([137]) + bytes(299)

    client.send(datagram)

    ack = await client.next_reply()
    assert ack.data == b"ack\xff"
    await server.protocol.wait_idle()
    assert ack.data[3] == len(fake_link.written) == 255
    assert fake_link.writes == [datagram[:255]]
