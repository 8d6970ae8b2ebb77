import asyncio

import pytest

from roomba_gateway.config import GatewayConfig
from roomba_gateway.main import Gateway
from roomba_remote.replies import ReplyKind
from roomba_remote.udp_client import UdpGatewayClient

from conftest import FakeCamera, FakeLink


def make_config(**overrides):
    values = dict(udp_host="127.0.0.1", udp_port=0, settle_ms=1)
    values.update(overrides)
    return GatewayConfig(**values)


@pytest.mark.asyncio
async def test_start_opens_link_flushes_and_configures_camera():
    link = FakeLink()
    link.feed(b"bl-start\r\n")
    camera = FakeCamera()
    gateway = Gateway(make_config(), link=link, camera=camera)

    await gateway.start()
    try:
        assert link.opened
        assert link.rx == bytearray()
        assert camera.configure_calls == [(12, 8)]
        assert gateway.get_stats()["running"] is True
    finally:
        await gateway.stop()

    assert not link.opened
    assert camera.closed
    assert gateway.get_stats()["running"] is False


@pytest.mark.asyncio
async def test_camera_failure_is_not_fatal():
    gateway = Gateway(make_config(), link=FakeLink(), camera=FakeCamera(configure_ok=False))

    await gateway.start()
    try:
        assert gateway.udp_server is not None
    finally:
        await gateway.stop()


@pytest.mark.asyncio
async def test_udp_end_to_end():
    link = FakeLink(responses={142: b"\x00\x10"})
    gateway = Gateway(make_config(), link=link, camera=FakeCamera())
    await gateway.start()

    host, port = gateway.udp_server.local_address
    client = UdpGatewayClient(host, port)
    await client.start()
    try:
        client.send(bytes([128]))
        assert (await client.next_reply()).acked_length == 1

        client.send(bytes([142, 14]))
        assert (await client.next_reply()).kind is ReplyKind.ACK
        reply = await client.next_reply()
        assert reply.packet_id == 14
        assert reply.payload == b"\x00\x10"

        with pytest.raises(asyncio.TimeoutError):
            await client.next_reply(timeout=0.1)
    finally:
        await client.stop()
        await gateway.stop()

    assert link.writes == [bytes([128]), bytes([142, 14])]
    assert gateway.dispatcher.get_stats()["frames"] == 2
