"""
Installation Control File.

Reads the software defaults of the product control document
(``installation.xml``). Only the ``software`` section is used.
"""

import xml.etree.ElementTree as ET
from pathlib import Path

from structlog import get_logger

from sysreg.exceptions import ConfigError

logger = get_logger(__name__)


def _local_name(tag: str) -> str:
    """
    Tag name without its namespace.

        >>> _local_name("{http://www.suse.com/1.0/yast2ns}software")
        'software'
    """
    return tag.rsplit("}", 1)[-1]


class ControlFile:
    """Default patterns declared in a control document."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._software = self._parse_software_section(self.path)

    @staticmethod
    def _parse_software_section(path: Path) -> dict[str, str]:
        logger.info("parsing_control_file", path=str(path))
        try:
            root = ET.parse(path).getroot()
        except ET.ParseError as exc:
            raise ConfigError(f"Cannot parse control file {path}: {exc}") from exc
        except OSError as exc:
            raise ConfigError(f"Cannot read control file {path}: {exc.strerror}") from exc

        software: dict[str, str] = {}
        for section in root:
            if _local_name(section.tag) != "software":
                continue
            for item in section:
                software[_local_name(item.tag)] = (item.text or "").strip()
        return software

    def default_patterns(self) -> list[str]:
        return self._software.get("default_patterns", "").split()

    def default_optional_patterns(self) -> list[str]:
        return self._software.get("default_optional_patterns", "").split()
