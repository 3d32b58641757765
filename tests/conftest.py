# SPDX-License-Identifier: MIT
# Copyright (c) 2026 ADNT Sarl <info@adnt.io>

"""Pytest configuration."""

from pathlib import Path

import pytest

from helpers import FakePort


def pytest_addoption(parser):
    """Add custom command-line options."""
    parser.addoption(
        "--device",
        action="store",
        default=None,
        help="Device to flash: 'usb' or a serial port (e.g., /dev/ttyUSB0)",
    )
    parser.addoption(
        "--firmware",
        action="store",
        default=None,
        help="Firmware binary used by the integration tests",
    )


@pytest.fixture
def fake_port():
    """Factory for scripted in-memory ports."""
    def make(responses=None):
        port = FakePort(responses)
        port.open()
        return port
    return make


@pytest.fixture(scope="session")
def device(request):
    """Device selected on the command line, or skip."""
    device = request.config.getoption("--device")
    if not device:
        pytest.skip("No device specified (use --device)")
    return device


@pytest.fixture(scope="session")
def firmware_path(request):
    """Firmware binary given on the command line, or skip."""
    path = request.config.getoption("--firmware")
    if not path:
        pytest.skip("No firmware specified (use --firmware)")
    path = Path(path)
    if not path.exists():
        pytest.fail(f"Firmware not found: {path}")
    return path


@pytest.fixture
def port(device):
    """
    Open a port to the device in boot mode.

    The device must be reset into boot mode before each test; the boot
    ROM accepts the handshake only once per reset.
    """
    from hboot_protocol.transport import SerialPort, UsbPort

    port = UsbPort() if device == "usb" else SerialPort(device)
    port.open()
    yield port
    port.close()
