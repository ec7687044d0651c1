"""Tests for the OS print-queue fallback."""

import logging
from unittest.mock import MagicMock, patch

import pytest

from errors import SystemPrinterError
from system_printer import COMPACT_LP_OPTIONS, QUEUE, RAW, SystemSpooler, pick_thermal_printer


@pytest.fixture
def spooler(tmp_path):
    """Linux spooler writing into tmp_path with a fixed printer name."""
    s = SystemSpooler(platform="linux")
    s.scratch_dir = MagicMock(return_value=tmp_path)
    with patch("config.SYSTEM_PRINTER_NAME", "POS58"):
        yield s


class TestPrinterDetection:
    """Tests for thermal printer name detection."""

    def test_pick_thermal_printer_matches_keywords(self):
        """The first name containing a receipt printer keyword wins."""
        names = ["Microsoft Print to PDF", "Fax", "XP-58 Receipt", "POS-58"]
        assert pick_thermal_printer(names) == "XP-58 Receipt"
        assert pick_thermal_printer(["HP LaserJet"]) is None
        assert pick_thermal_printer(["Printer_USB_Printer_Port"]) == "Printer_USB_Printer_Port"

    def test_detection_runs_once(self):
        """The detected name is cached."""
        s = SystemSpooler(platform="linux")
        s._list_cups_printers = MagicMock(return_value=["Office", "H-58C"])
        with patch("config.SYSTEM_PRINTER_NAME", ""):
            assert s.detect_printer_name() == "H-58C"
            assert s.detect_printer_name() == "H-58C"
        s._list_cups_printers.assert_called_once()

    def test_configured_name_skips_detection(self):
        """SYSTEM_PRINTER_NAME overrides detection."""
        s = SystemSpooler(platform="win32")
        s._list_windows_printers = MagicMock()
        with patch("config.SYSTEM_PRINTER_NAME", "Thermal"):
            assert s.detect_printer_name() == "Thermal"
        s._list_windows_printers.assert_not_called()

    def test_listing_failure_falls_back_to_default_printer(self, caplog):
        """If printers cannot be listed the default printer is used."""
        caplog.set_level(logging.WARNING)
        s = SystemSpooler(platform="linux")
        s._list_cups_printers = MagicMock(side_effect=FileNotFoundError("lpstat"))
        with patch("config.SYSTEM_PRINTER_NAME", ""):
            assert s.detect_printer_name() is None
        assert "will use default printer" in caplog.text

    def test_cups_printers_parsed_from_lpstat(self):
        """Printer names are the first word of each lpstat -a line."""
        result = MagicMock(stdout="H-58C accepting requests since Sun\nOffice accepting requests\n\n")
        with patch("system_printer._run", return_value=result) as run:
            assert SystemSpooler(platform="linux")._list_cups_printers() == ["H-58C", "Office"]
        run.assert_called_once_with(["lpstat", "-a"])


class TestScratchDir:
    """Tests for SystemSpooler.scratch_dir."""

    def test_windows_uses_configured_dir(self, tmp_path):
        """Windows always uses SCRATCH_DIR and creates it."""
        target = tmp_path / "Temp"
        with patch("config.SCRATCH_DIR", str(target)):
            assert SystemSpooler(platform="win32").scratch_dir() == target
        assert target.is_dir()

    def test_avoids_non_ascii_temp(self, tmp_path):
        """A non-ASCII temp dir is replaced by SCRATCH_DIR."""
        target = tmp_path / "receipts"
        with patch("config.SCRATCH_DIR", str(target)), patch(
            "system_printer.tempfile.gettempdir", return_value=str(tmp_path / "Временные")
        ):
            assert SystemSpooler(platform="linux").scratch_dir() == target

    def test_uses_ascii_temp(self, tmp_path):
        """An ASCII temp dir is used as is."""
        with patch("system_printer.tempfile.gettempdir", return_value=str(tmp_path)):
            assert SystemSpooler(platform="linux").scratch_dir() == tmp_path


class TestMechanisms:
    """Tests for the OS delivery mechanisms."""

    def test_mechanism_order(self):
        """Raw bypass comes before the print-queue command on every platform."""
        assert [name for name, _ in SystemSpooler(platform="win32").mechanisms()] == [RAW, QUEUE]
        assert [name for name, _ in SystemSpooler(platform="darwin").mechanisms()] == [RAW, QUEUE]

    def test_cups_commands(self):
        """lp is called with -o raw, then with the compact page options."""
        s = SystemSpooler(platform="linux")
        with patch("system_printer._run") as run:
            s._cups_raw("/tmp/r.txt", "POS58")
            s._cups_queue("/tmp/r.txt", None)
        assert run.call_args_list[0].args[0] == ["lp", "-d", "POS58", "-o", "raw", "/tmp/r.txt"]
        assert run.call_args_list[1].args[0] == ["lp", *COMPACT_LP_OPTIONS, "/tmp/r.txt"]


@pytest.mark.asyncio
class TestSubmit:
    """Tests for SystemSpooler.submit."""

    async def test_raw_bypass_is_tried_first(self, spooler, tmp_path):
        """A working raw bypass ends delivery and the file is removed."""
        seen = []

        def fake_run(args, env=None):
            seen.append(args)
            # scratch file exists while the command runs
            assert (tmp_path / args[-1].rsplit("/", 1)[-1]).exists()

        with patch("system_printer._run", side_effect=fake_run):
            assert await spooler.submit("Hello\n") == RAW

        assert len(seen) == 1
        assert "raw" in seen[0]
        assert list(tmp_path.iterdir()) == []

    async def test_queue_used_when_raw_fails(self, spooler, tmp_path):
        """The print-queue command runs only after the raw bypass failed."""
        calls = []

        def fake_run(args, env=None):
            calls.append(args)
            if "raw" in args:
                raise RuntimeError("lp exited with 1: filter failed")

        with patch("system_printer._run", side_effect=fake_run):
            assert await spooler.submit("Hello\n") == QUEUE

        assert len(calls) == 2
        assert "cpi=17" in calls[1]
        assert list(tmp_path.iterdir()) == []

    async def test_all_mechanisms_failing_cleans_up(self, spooler, tmp_path):
        """Both failing raises SystemPrinterError and leaves no file behind."""
        with patch("system_printer._run", side_effect=RuntimeError("no lp")):
            with pytest.raises(SystemPrinterError, match="raw: no lp; queue: no lp"):
                await spooler.submit("Hello\n")
        assert list(tmp_path.iterdir()) == []

    async def test_scratch_files_are_request_unique(self, spooler):
        """Each submission writes its own scratch file."""
        paths = []

        def fake_run(args, env=None):
            paths.append(args[-1])

        with patch("system_printer._run", side_effect=fake_run):
            await spooler.submit("one")
            await spooler.submit("two")

        assert len(set(paths)) == 2
        assert all("thermal_receipt_" in p for p in paths)

    async def test_content_written_with_configured_encoding(self, spooler):
        """The scratch file uses SYSTEM_PRINTER_ENCODING."""
        written = []

        def fake_run(args, env=None):
            with open(args[-1], "rb") as f:
                written.append(f.read())

        with patch("config.SYSTEM_PRINTER_ENCODING", "cp866"), patch(
            "system_printer._run", side_effect=fake_run
        ):
            await spooler.submit("ИТОГО\n")

        assert written == ["ИТОГО\n".encode("cp866")]

    async def test_unwritable_scratch_dir_is_system_printer_error(self):
        """A scratch dir that cannot be created raises SystemPrinterError."""
        s = SystemSpooler(platform="linux")
        s.scratch_dir = MagicMock(side_effect=PermissionError("denied"))
        with patch("config.SYSTEM_PRINTER_NAME", "POS58"):
            with pytest.raises(SystemPrinterError, match="scratch file"):
                await s.submit("x")
