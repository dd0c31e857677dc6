"""Domain-specific errors for jimuprobe."""


class JimuProbeError(Exception):
    """Base error for jimuprobe."""


class ProfileValidationError(JimuProbeError):
    """Raised when a profile file does not conform to schema or semantics."""


class ProfileLoadError(JimuProbeError):
    """Raised when loading profile sources fails."""


class DeviceDiscoveryError(JimuProbeError):
    """Raised when the BLE scan itself fails."""


class DeviceSelectionError(JimuProbeError):
    """Raised when no scanned peripheral can be picked as the probe target."""


class SelectionError(JimuProbeError):
    """Raised when a peripheral exposes no usable write or notify characteristics."""


class FrameError(JimuProbeError):
    """Raised when a payload cannot be framed."""


class TransportError(JimuProbeError):
    """Base transport error."""


class TransportConnectError(TransportError):
    """Raised on BLE connect or discovery failures."""


class TransportSendError(TransportError):
    """Raised when a GATT write or subscription fails."""


class TransportTimeoutError(TransportError):
    """Raised when a BLE operation exceeds its configured timeout."""
