"""
Tests for the installation control file.
"""

from pathlib import Path

import pytest

from sysreg.exceptions import ConfigError
from sysreg.services.control_file import ControlFile

CONTROL_XML = """<?xml version="1.0"?>
<productDefines xmlns="http://www.suse.com/1.0/yast2ns"
    xmlns:config="http://www.suse.com/1.0/configns">
  <software>
    <default_patterns>base x11  Minimal
      gnome</default_patterns>
    <default_optional_patterns>apparmor</default_optional_patterns>
  </software>
</productDefines>
"""


def write(tmp_path: Path, content: str) -> Path:
    path = tmp_path / "installation.xml"
    path.write_text(content)
    return path


class TestControlFile:
    """Tests for ControlFile."""

    def test_patterns(self, tmp_path: Path):
        control = ControlFile(write(tmp_path, CONTROL_XML))

        assert control.default_patterns() == ["base", "x11", "Minimal", "gnome"]
        assert control.default_optional_patterns() == ["apparmor"]

    def test_missing_values(self, tmp_path: Path):
        control = ControlFile(write(tmp_path, "<productDefines><software/></productDefines>"))

        assert control.default_patterns() == []
        assert control.default_optional_patterns() == []

    def test_missing_software_section(self, tmp_path: Path):
        control = ControlFile(write(tmp_path, "<productDefines><globals/></productDefines>"))
        assert control.default_patterns() == []

    def test_empty_value(self, tmp_path: Path):
        control = ControlFile(
            write(tmp_path, "<productDefines><software><default_patterns/></software></productDefines>")
        )
        assert control.default_patterns() == []

    def test_invalid_xml(self, tmp_path: Path):
        with pytest.raises(ConfigError):
            ControlFile(write(tmp_path, "<productDefines><software>"))

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigError):
            ControlFile(tmp_path / "missing.xml")
