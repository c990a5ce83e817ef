# Radar - Detail Block Parsing
"""
Reads the ``Key: Value`` detail blocks written by the discoverers back into
typed fields. This is the only place that knows the line format.
"""

import re
from dataclasses import dataclass, field

URL_PORT_RE = re.compile(r"[A-Za-z][\w+.-]*://[^\s/:]+:(\d{1,5})")
LABEL_PORT_RE = re.compile(r"^([A-Za-z][\w.+-]*):(\d{1,5})$")
PORT_LABEL_RE = re.compile(r"^(\d{1,5})\s*:\s*(\S.*)$")

EXCLUDED_PREFIXES = ("IP:", "Type:", "USN:", "Full Name:")
EXTRA_PREFIXES = ("Model:", "Manufacturer:", "Device Type:", "Service Type:")


@dataclass
class DetailFacts:
    """Typed view of a detail block."""
    hostname: str | None = None
    uuid: str | None = None
    location: str | None = None
    server: str | None = None
    ports: list[tuple[int, str]] = field(default_factory=list)
    extra: list[str] = field(default_factory=list)

    def add_port(self, port: int, label: str) -> None:
        if 0 < port <= 65535 and all(p != port for p, _ in self.ports):
            self.ports.append((port, label))


def _value(line: str) -> str | None:
    value = line.partition(":")[2].strip()
    return value or None


def parse_detail_lines(details: str | None) -> DetailFacts:
    """
    Parse a detail block.

    Only the first value seen for hostname, UUID, location and server is kept.
    Ports come from ``scheme://host:port`` fragments (labelled
    "Web Interface") and from ``port: label`` or ``label:port`` lines.
    """
    facts = DetailFacts()
    if not details:
        return facts

    for raw in details.splitlines():
        line = raw.strip()
        if not line:
            continue

        if line.startswith(("Host:", "Hostname:")):
            if facts.hostname is None:
                facts.hostname = _value(line)
        elif line.startswith("UUID:"):
            if facts.uuid is None:
                facts.uuid = _value(line)
        elif line.startswith("Location:"):
            if facts.location is None:
                facts.location = _value(line)
        elif line.startswith("Server:"):
            if facts.server is None:
                facts.server = _value(line)
        elif "://" in line:
            match = URL_PORT_RE.search(line)
            if match:
                facts.add_port(int(match.group(1)), "Web Interface")
        elif not line.startswith(EXCLUDED_PREFIXES):
            match = PORT_LABEL_RE.match(line)
            if match:
                facts.add_port(int(match.group(1)), match.group(2).strip())
            else:
                match = LABEL_PORT_RE.match(line)
                if match:
                    facts.add_port(int(match.group(2)), match.group(1))

        if line.startswith(EXTRA_PREFIXES):
            facts.extra.append(line)

    return facts
