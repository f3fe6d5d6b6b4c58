"""Unit tests for the Devices registry."""

import unittest
from unittest.mock import MagicMock, patch

from botlink.bluetooth.devices import Devices
from botlink.bluetooth.profiles import EV3, MBOT, SPHERO_2
from botlink.models import SPP_UUID, DeviceDescriptor, EventType

from fake_transport import FakeTransport


class FakeTimer:
    """threading.Timer stand-in that only runs when told to."""

    instances = []

    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.daemon = False
        self.started = False
        self.cancelled = False
        FakeTimer.instances.append(self)

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def expire(self):
        if not self.cancelled:
            self.function()


def sphero(address="AA:BB", name="Sphero-RGB", connected=False):
    return DeviceDescriptor(
        address=address,
        name=name,
        device_class=7936,
        uuids=(SPP_UUID,),
        connected=connected,
        paired=True,
    )


class TestDevicesDiscovery(unittest.TestCase):
    """Test discovery and profile matching."""

    def setUp(self):
        FakeTimer.instances = []
        self.transport = FakeTransport()
        self.devices = Devices(self.transport, timer_factory=FakeTimer)

    def tearDown(self):
        self.devices.close()

    def test_matching_descriptor_creates_device(self):
        """A Sphero discovery entry yields one Sphero device."""
        self.transport.devices = [sphero(name="Sphero-ABC")]

        self.devices.prepare()

        device = self.devices.get_device("AA:BB")
        self.assertIsNotNone(device)
        self.assertIs(device.profile, SPHERO_2)
        self.assertEqual(device.name, "Sphero-ABC")
        self.assertTrue(device.paired)
        self.assertFalse(device.is_connected())
        self.assertEqual(list(self.devices.get_devices()), ["AA:BB"])

    def test_non_matching_descriptor_is_ignored(self):
        self.transport.devices = [
            DeviceDescriptor("11:22", name="Headset", device_class=0x240404),
            DeviceDescriptor("33:44", name="Sphero", device_class=7936),
        ]

        self.devices.prepare()

        self.assertEqual(self.devices.get_devices(), {})

    def test_first_matching_profile_wins(self):
        """mBot and mBot Ranger share a signature; the first one wins."""
        self.transport.devices = [
            sphero("CC:DD", name="Makeblock"),
            DeviceDescriptor("EE:FF", name="EV3", device_class=2060, uuids=(SPP_UUID,)),
        ]

        self.devices.prepare()

        self.assertIs(self.devices.get_device("CC:DD").profile, MBOT)
        self.assertIs(self.devices.get_device("EE:FF").profile, EV3)

    def test_duplicate_address_creates_one_device(self):
        self.transport.devices = [sphero(), sphero()]

        self.devices.prepare()

        self.assertEqual(list(self.devices.get_devices()), ["AA:BB"])

    def test_unchanged_scan_is_skipped(self):
        """An identical discovery result is not processed twice."""
        self.transport.devices = [sphero("AA:BB"), sphero("CC:DD")]
        self.devices.prepare()

        with patch.object(self.devices, "get_device_profile") as mock_profile:
            self.transport.devices = [sphero("CC:DD"), sphero("AA:BB")]
            self.devices.update_devices()
            mock_profile.assert_not_called()

    def test_get_unknown_device(self):
        self.devices.prepare()
        with self.assertLogs("botlink.bluetooth.devices", level="ERROR"):
            self.assertIsNone(self.devices.get_device("00:00"))

    def test_prepare_closes_stale_sockets(self):
        self.transport.open_socket("AA:BB")

        self.devices.prepare()

        self.assertEqual(self.transport.count("close"), 1)
        self.assertEqual(self.transport.get_sockets(), [])

    def test_prepare_is_idempotent(self):
        self.devices.prepare()
        self.devices.prepare()

        self.assertEqual(self.transport.count("get_devices"), 1)

    def test_added_notification_rescans(self):
        """The first notification rescans at once, later ones are coalesced."""
        self.devices.prepare()

        self.transport.add_device(sphero("AA:BB"))
        self.assertIsNotNone(self.devices.get_devices().get("AA:BB"))

        self.transport.add_device(sphero("CC:DD"))
        self.transport.add_device(sphero("EE:FF"))
        self.assertNotIn("CC:DD", self.devices.get_devices())
        self.assertEqual(self.transport.count("get_devices"), 2)

        FakeTimer.instances[0].expire()
        self.assertIn("CC:DD", self.devices.get_devices())
        self.assertIn("EE:FF", self.devices.get_devices())
        self.assertEqual(self.transport.count("get_devices"), 3)

    def test_existing_device_is_refreshed(self):
        """A rescan refreshes known devices instead of replacing them."""
        self.transport.devices = [sphero()]
        self.devices.prepare()
        device = self.devices.get_device("AA:BB")

        with patch.object(device, "update_info") as mock_update:
            self.transport.devices = [sphero(name="Sphero-RGB"), sphero("CC:DD")]
            self.devices.update_devices()
            mock_update.assert_called_once()

        self.assertIs(self.devices.get_device("AA:BB"), device)

    def test_connected_descriptor_adopts_socket(self):
        """A device reported as connected takes over the open socket."""
        self.devices.prepare()
        socket_id = self.transport.open_socket("AA:BB", SPP_UUID)

        self.transport.change_device(sphero(connected=True))

        device = self.devices.get_device("AA:BB")
        self.assertEqual(device.socket_id, socket_id)
        self.assertTrue(device.is_connected())
        self.assertIs(self.devices.socket_ids[socket_id], device)

    def test_removed_notification_drops_device(self):
        self.transport.devices = [sphero()]
        self.devices.prepare()
        self.devices.auto_connect_device("Sphero", MagicMock())
        self.assertEqual(len(self.devices.socket_ids), 1)

        self.transport.remove_device(sphero())

        self.assertEqual(self.devices.get_devices(), {})
        self.assertEqual(self.devices.socket_ids, {})

    def test_notification_before_prepare(self):
        """Discovery notifications before prepare() only invalidate the cache."""
        self.devices._handle_device_added(sphero())
        self.devices._handle_device_removed(sphero())

        self.assertEqual(self.devices.get_devices(), {})
        self.assertEqual(self.transport.count("get_devices"), 0)

    def test_close_unsubscribes(self):
        self.devices.prepare()
        self.devices.close()

        self.transport.add_device(sphero())

        self.assertEqual(self.devices.get_devices(), {})


class TestDevicesByName(unittest.TestCase):
    """Test name lookup and auto connect."""

    def setUp(self):
        FakeTimer.instances = []
        self.transport = FakeTransport(devices=[sphero("AA:BB"), sphero("CC:DD")])
        self.devices = Devices(self.transport, timer_factory=FakeTimer)
        self.devices.prepare()

    def test_prefers_connected_device(self):
        self.devices.get_device("CC:DD").connect()

        for _ in range(10):
            self.assertEqual(self.devices.get_device_by_name("Sphero").address, "CC:DD")

    def test_falls_back_to_disconnected_device(self):
        device = self.devices.get_device_by_name("Sphero")
        self.assertIn(device.address, ("AA:BB", "CC:DD"))

    def test_unknown_name_is_logged_once(self):
        with self.assertLogs("botlink.bluetooth.devices", level="ERROR") as logs:
            self.assertIsNone(self.devices.get_device_by_name("EV3"))
            self.assertIsNone(self.devices.get_device_by_name("EV3"))
        self.assertEqual(len(logs.records), 1)

    def test_auto_connect_unknown_name(self):
        callback = MagicMock()

        self.assertFalse(self.devices.auto_connect_device("EV3", callback))
        callback.assert_not_called()

    def test_auto_connect_connects_device(self):
        """auto_connect_device connects and reports (device, address)."""
        callback = MagicMock()

        self.assertTrue(self.devices.auto_connect_device("Sphero", callback))

        callback.assert_called_once()
        device, address = callback.call_args[0]
        self.assertTrue(device.is_connected())
        self.assertEqual(address, device.address)
        self.assertIs(self.devices.socket_ids[device.socket_id], device)

    def test_auto_connect_connected_device(self):
        """An already connected device is reported without reconnecting."""
        self.devices.auto_connect_device("Sphero", MagicMock())
        callback = MagicMock()

        self.devices.auto_connect_device("Sphero", callback)

        callback.assert_called_once()
        self.assertEqual(self.transport.count("create"), 1)


class TestDevicesRouting(unittest.TestCase):
    """Test routing of transport data and errors by socket handle."""

    def setUp(self):
        FakeTimer.instances = []
        self.transport = FakeTransport(devices=[sphero("AA:BB")])
        self.devices = Devices(self.transport, timer_factory=FakeTimer)
        self.devices.prepare()
        self.devices.auto_connect_device("Sphero", MagicMock())
        self.device = self.devices.get_device("AA:BB")

    def test_receive_is_routed_to_device(self):
        received = []
        self.device.events.subscribe(EventType.RECEIVE, received.append)

        self.transport.receive(self.device.socket_id, b"\xff\xfe")
        self.transport.receive(99, b"\x00")

        self.assertEqual([e.data for e in received], [b"\xff\xfe"])

    def test_receive_error_disconnects_device(self):
        """A disconnect error reaches the device and clears the socket index."""
        self.transport.receive_error(self.device.socket_id, "disconnected: gone")

        self.assertFalse(self.device.is_connected())
        self.assertEqual(self.devices.socket_ids, {})

    def test_socket_not_found_clears_socket_index(self):
        """An implicitly closed socket leaves no stale index entry."""
        self.transport.info_error = "Socket not found"

        self.device.update_info()

        self.assertFalse(self.device.has_socket())
        self.assertEqual(self.devices.socket_ids, {})

    def test_socket_index_after_reconnect(self):
        """Every index entry points at a device holding that handle."""
        self.device.disconnect()
        self.device.connect()

        self.assertEqual(list(self.devices.socket_ids), [2])
        for socket_id, device in self.devices.socket_ids.items():
            self.assertEqual(device.socket_id, socket_id)
        self.assertEqual(len(self.transport.get_sockets()), 1)

    def test_receive_error_unknown_socket(self):
        self.transport.receive_error(99, "disconnected")

        self.assertTrue(self.device.is_connected())


if __name__ == "__main__":
    unittest.main()
