# Radar - Errors
"""Exception hierarchy shared by the discovery components."""


class RadarError(Exception):
    """Base class for all radar errors."""


class BindingError(RadarError):
    """A binding (STUN) exchange with one server failed."""


class BindingResponseError(BindingError):
    """A binding response could not be decoded."""


class PublicIPNotFoundError(RadarError):
    """No source produced a public IP address."""


class DiscoverySessionError(RadarError):
    """A discovery session could not be created at all."""


class DescriptionParseError(RadarError):
    """A UPnP device description was not valid XML."""


class GatewayNotFoundError(RadarError):
    """The default gateway could not be determined."""


class ScanInProgressError(RadarError):
    """A full scan was requested while another one is running."""
