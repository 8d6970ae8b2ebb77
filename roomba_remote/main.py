#!/usr/bin/env python3
"""
Roomba Remote - send one frame to the gateway and print what comes back.

Usage:
    python -m roomba_remote.main --udp 192.168.50.192:2390 128 131
    python -m roomba_remote.main --udp 192.168.50.192 142 6
    python -m roomba_remote.main --ws ws://192.168.50.192:8080/ws 200 --save frame.jpg
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .replies import Reply, ReplyKind, decode_sensor_reply
from .udp_client import UdpGatewayClient, parse_address
from .ws_client import WebSocketGatewayClient

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def parse_frame(values: List[str]) -> bytes:
    """Turn decimal or 0x-prefixed byte values into a frame."""
    frame = bytearray()
    for value in values:
        number = int(value, 0)
        if not 0 <= number <= 255:
            raise ValueError(f"byte value out of range: {value}")
        frame.append(number)
    if not frame:
        raise ValueError("frame is empty")
    return bytes(frame)


def describe_sensor_data(reply: Reply) -> str:
    try:
        decoded = decode_sensor_reply(reply)
    except ValueError:
        return f"sensor packet {reply.packet_id}: {list(reply.payload)}"

    fields = ", ".join(f"{name}={value}" for name, value in decoded["values"].items())
    text = f"sensor packet {reply.packet_id}: {fields}"
    if decoded["truncated"]:
        text += f" (truncated, {decoded['received_length']} of {decoded['expected_length']} bytes)"
    if decoded["extra"]:
        text += f" (extra: {list(decoded['extra'])})"
    return text


def describe_reply(reply: Reply) -> str:
    if reply.kind is ReplyKind.ACK:
        return f"ack: gateway received {reply.acked_length} bytes"
    if reply.kind is ReplyKind.SENSOR_DATA:
        return describe_sensor_data(reply)
    if reply.kind is ReplyKind.IMAGE:
        return f"image: {len(reply.data)} bytes"
    return reply.data.rstrip(b"\x00").decode("ascii", errors="replace")


async def collect(client, window: float) -> List[Reply]:
    replies = []
    while True:
        try:
            replies.append(await client.next_reply(timeout=window))
        except asyncio.TimeoutError:
            return replies


async def main_async(args: argparse.Namespace) -> int:
    """Async main entry point."""
    frame = parse_frame(args.bytes)

    if args.ws:
        client = WebSocketGatewayClient(args.ws, token=args.token)
        await client.start()
        if not await client.wait_connected(timeout=args.timeout):
            logger.error(f"Could not connect to {args.ws}")
            await client.stop()
            return 1
    else:
        host, port = parse_address(args.udp)
        client = UdpGatewayClient(host, port)
        await client.start()

    try:
        client.send(frame)
        replies = await collect(client, args.window)
    finally:
        await client.stop()

    if not replies:
        print("no messages from gateway")
        return 1

    for reply in replies:
        print(describe_reply(reply))
        if args.save and reply.kind is ReplyKind.IMAGE:
            Path(args.save).write_bytes(reply.data)
            print(f"saved to {args.save}")
    return 0


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Send a command frame to a Roomba Gateway",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    transport = parser.add_mutually_exclusive_group(required=True)
    transport.add_argument(
        "--udp",
        type=str,
        help="Gateway UDP address host[:port]",
    )
    transport.add_argument(
        "--ws",
        type=str,
        help="Gateway WebSocket URL (e.g. ws://host:8080/ws)",
    )
    parser.add_argument(
        "--token",
        type=str,
        default=None,
        help="Bearer token for the WebSocket transport",
    )
    parser.add_argument(
        "--window",
        type=float,
        default=0.5,
        help="Seconds to wait for each further reply",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=5.0,
        help="WebSocket connect timeout (s)",
    )
    parser.add_argument(
        "--save",
        type=str,
        default=None,
        help="Write a received camera frame to this file",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "bytes",
        nargs="+",
        help="Frame byte values, decimal or 0x-prefixed",
    )

    args = parser.parse_args(argv)

    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        sys.exit(asyncio.run(main_async(args)))
    except ValueError as e:
        parser.error(str(e))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(0)


if __name__ == "__main__":
    main()
