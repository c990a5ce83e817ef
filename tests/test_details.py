"""Tests for detail block parsing."""

from radar.details import parse_detail_lines


class TestParseDetailLines:
    """Reading typed fields back out of detail blocks."""

    def test_empty(self):
        facts = parse_detail_lines(None)

        assert facts.hostname is None
        assert facts.ports == []
        assert facts.extra == []

    def test_host_and_hostname_first_wins(self):
        facts = parse_detail_lines("Host: a.local.\nHostname: b.local")

        assert facts.hostname == "a.local."

    def test_location_keeps_full_url(self):
        facts = parse_detail_lines("Location: http://192.168.1.1:5000/rootDesc.xml")

        assert facts.location == "http://192.168.1.1:5000/rootDesc.xml"
        assert facts.ports == []

    def test_url_fragment_port(self):
        facts = parse_detail_lines("Web Interface: http://10.0.0.2:8443/admin")

        assert facts.ports == [(8443, "Web Interface")]

    def test_url_without_port_is_ignored(self):
        facts = parse_detail_lines("Manufacturer URL: http://www.example.com/")

        assert facts.ports == []

    def test_port_label_and_label_port_lines(self):
        facts = parse_detail_lines("Open TCP ports:\n  22: ssh\n  80: http\nrtsp:554")

        assert facts.ports == [(22, "ssh"), (80, "http"), (554, "rtsp")]

    def test_excluded_prefixes_do_not_add_ports(self):
        facts = parse_detail_lines("Type: 80\nIP: 10.0.0.1\nUSN: uuid:abc::upnp:rootdevice\nFull Name: x:80")

        assert facts.ports == []

    def test_out_of_range_port_ignored(self):
        facts = parse_detail_lines("70000: bogus")

        assert facts.ports == []

    def test_extra_lines_collected(self):
        facts = parse_detail_lines(
            "Device Type: urn:schemas-upnp-org:device:MediaRenderer:1\n"
            "Manufacturer: Sonos\n"
            "Model: Play:1\n"
            "Service Type: airplay\n"
            "Port: 7000"
        )

        assert facts.extra == [
            "Device Type: urn:schemas-upnp-org:device:MediaRenderer:1",
            "Manufacturer: Sonos",
            "Model: Play:1",
            "Service Type: airplay",
        ]
        assert facts.ports == []
