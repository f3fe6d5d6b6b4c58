"""Unit tests for Sphero 2.0 command serialization."""

import unittest

from botlink.errors import UnknownCommandError
from botlink.protocol.sphero2.handler import (
    Calibrate,
    CommandBuffer,
    GetDeviceInfo,
    Roll,
    SetRGB,
    Sphero2Handler,
)


class TestCommandBuffer(unittest.TestCase):

    def test_read_and_read_signed(self):
        buffer = CommandBuffer(0x00, 0x11, sequence=0x01, reply=True)

        self.assertEqual(buffer.read(), b"\xff\xff\x00\x11\x01\x01")
        self.assertEqual(buffer.read_signed(), b"\xff\xff\x00\x11\x01\x01\xec")

    def test_no_reply_header(self):
        buffer = CommandBuffer(0x02, 0x21, b"\x80")
        self.assertEqual(buffer.read()[:2], b"\xff\xfe")
        self.assertIsNone(buffer.get_characteristic())


class TestSphero2Handler(unittest.TestCase):
    """Test name lookup and the serializer."""

    def setUp(self):
        self.handler = Sphero2Handler()

    def test_get_device_info(self):
        buffer = self.handler.get_buffer("get_device_info")

        self.assertEqual(buffer.read_signed(), b"\xff\xff\x00\x11\x01\x01\xec")
        self.assertTrue(buffer.reply)

    def test_roll(self):
        buffer = self.handler.serialize(Roll(speed=80, heading=90))

        self.assertEqual(
            buffer.read_signed(),
            b"\xff\xfe\x02\x30\x00\x05\x50\x00\x5a\x01\x1d",
        )

    def test_roll_heading_wraps(self):
        buffer = self.handler.get_buffer("roll", {"speed": 300, "heading": 450})

        self.assertEqual(buffer.data, b"\xff\x00\x5a\x01")

    def test_stop(self):
        buffer = self.handler.get_buffer("stop")
        self.assertEqual(buffer.data, b"\x00\x00\x00\x00")

    def test_set_rgb(self):
        buffer = self.handler.serialize(SetRGB(red=255, persistent=True))

        self.assertEqual(buffer.data, b"\xff\x00\x00\x01")
        self.assertFalse(buffer.reply)

    def test_replies_carry_their_sequence(self):
        self.assertEqual(self.handler.get_buffer("get_rgb").sequence, 0x15)
        self.assertEqual(self.handler.get_buffer("get_location").sequence, 0x10)
        self.assertEqual(self.handler.serialize(GetDeviceInfo()).sequence, 0x01)

    def test_calibrate_is_multi_packet(self):
        packets = self.handler.serialize(Calibrate(heading=45))

        self.assertEqual(len(packets), 3)
        self.assertEqual([p.command_id for p in packets], [0x30, 0x01, 0x21])

    def test_every_registered_command_serializes(self):
        for name in Sphero2Handler.COMMANDS:
            packet = self.handler.get_buffer(name)
            buffers = packet if isinstance(packet, list) else [packet]
            for buffer in buffers:
                self.assertIsInstance(buffer, CommandBuffer, name)
                signed = buffer.read_signed()
                # SOP1 SOP2 DID CID SEQ DLEN data... CHK
                self.assertEqual(signed[5], len(buffer.data) + 1, name)
                self.assertEqual(len(signed), len(buffer.data) + 7, name)

    def test_signed_packet_checksum(self):
        signed = self.handler.get_buffer("set_back_led", {"brightness": 128}).read_signed()
        self.assertEqual(signed[-1], (sum(signed[2:-1]) % 256) ^ 0xFF)

    def test_unknown_command_name(self):
        with self.assertRaises(UnknownCommandError) as ctx:
            self.handler.get_buffer("jump")
        self.assertEqual(ctx.exception.command, "jump")

    def test_unknown_parameter(self):
        with self.assertRaises(ValueError):
            self.handler.get_buffer("roll", {"velocity": 3})

    def test_unknown_command_type(self):
        with self.assertRaises(UnknownCommandError):
            self.handler.serialize(object())


if __name__ == "__main__":
    unittest.main()
