class Error(Exception):
    """Base class for all etcd3_autoconf errors."""


class TrustStoreError(Error):
    """Platform trust store could not be loaded."""


class CertificateDecodeError(Error):
    """Root CA file does not contain a decodable PEM block."""


class CertificateParseError(Error):
    """Decoded root CA block is not a valid X.509 certificate."""


class KeyPairLoadError(Error):
    """Client certificate/key pair is unreadable, malformed or mismatched."""


class ResolutionError(Error):
    """Etcd endpoints could not be discovered via DNS."""


class ClientConstructionError(Error):
    """Client library refused the connection configuration."""


class ConfigurationError(Error):
    """A flag or environment variable holds an invalid value."""
