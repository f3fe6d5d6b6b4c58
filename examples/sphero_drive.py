#!/usr/bin/env python3
"""
Sphero 2.0 Demo Script.

Scans Bluetooth serial ports for a Sphero, connects to it, reads the device
info and drives a small square while printing position and collisions.
"""

import sys
import threading
import time
import logging
from pathlib import Path

# Add botlink to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from botlink import SPHERO_2_FAMILY, Devices, EventType, RobotApi, SerialTransport

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)


def main():
    print("Scanning for Bluetooth serial ports...")
    transport = SerialTransport()
    devices = Devices(transport)
    devices.prepare()
    transport.start_watching()

    api = RobotApi(SPHERO_2_FAMILY)
    api.events.subscribe(EventType.POSITION, lambda e: print(f"Position: {e.data.x}, {e.data.y}"))
    api.events.subscribe(EventType.COLLISION, lambda e: print(f"Collision! {e.data}"))
    api.events.subscribe(EventType.CONNECT, lambda e: print(f"[{e.step}/3] {e.data}"))

    ready = threading.Event()

    def on_connect(device, address):
        if api.connect(device):
            ready.set()

    if not devices.auto_connect_device("Sphero", on_connect):
        print("No Sphero found! Is it paired and awake?")
        transport.stop_watching()
        return

    if not ready.wait(timeout=15.0):
        print("Connection timed out.")
        transport.stop_watching()
        return

    try:
        info = api.request("get_device_info").result(timeout=2.0)
        print(f"Connected to {info.name} ({info.address})")

        api.exec("set_rgb", {"green": 255})
        for heading in (0, 90, 180, 270):
            api.exec("roll", {"speed": 60, "heading": heading})
            time.sleep(1.5)
        api.exec("stop")

        print("\nMonitoring for 10 seconds (Ctrl+C to stop)...")
        time.sleep(10)

    except KeyboardInterrupt:
        print("\nInterrupted by user.")
    finally:
        print("\nDisconnecting...")
        api.disconnect()
        devices.close()
        transport.stop_watching()
        print("Done.")


if __name__ == "__main__":
    main()
