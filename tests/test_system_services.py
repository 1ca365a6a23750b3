import os
import tempfile
import unittest
from types import SimpleNamespace
from unittest import mock

from ecuwake.services.system import PortService, ToolLauncher


class PortServiceTests(unittest.TestCase):
    @mock.patch("ecuwake.services.system.serial.tools.list_ports.comports")
    def test_keeps_configured_port_even_when_not_listed(self, mock_comports) -> None:
        mock_comports.return_value = [
            SimpleNamespace(device="COM3"),
            SimpleNamespace(device="COM1"),
        ]

        selection = PortService().build_selection("COM4")

        self.assertEqual(selection.ports, ["COM1", "COM3"])
        self.assertEqual(selection.selected, "COM4")

    @mock.patch("ecuwake.services.system.serial.tools.list_ports.comports")
    def test_falls_back_to_first_listed_port(self, mock_comports) -> None:
        mock_comports.return_value = [SimpleNamespace(device="/dev/ttyUSB0")]

        selection = PortService().build_selection("  ")

        self.assertEqual(selection.selected, "/dev/ttyUSB0")

    @mock.patch(
        "ecuwake.services.system.serial.tools.list_ports.comports",
        side_effect=OSError("no access"),
    )
    def test_enumeration_failure_yields_no_ports(self, _comports) -> None:
        selection = PortService().build_selection(None)

        self.assertEqual(selection.ports, [])
        self.assertIsNone(selection.selected)


class ToolLauncherTests(unittest.TestCase):
    def test_missing_executable_raises(self) -> None:
        with self.assertRaises(FileNotFoundError):
            ToolLauncher().launch(os.path.join(tempfile.gettempdir(), "missing", "TunerPro.exe"))

    def test_launch_starts_process(self) -> None:
        with tempfile.NamedTemporaryFile(delete=False) as handle:
            path = handle.name
        self.addCleanup(os.unlink, path)

        with mock.patch("ecuwake.services.system.subprocess.Popen") as popen:
            result = ToolLauncher().launch(path)

        self.assertIs(result, popen.return_value)
        args, kwargs = popen.call_args
        self.assertEqual(args[0], [path])
        self.assertEqual(kwargs["cwd"], os.path.dirname(path))


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
