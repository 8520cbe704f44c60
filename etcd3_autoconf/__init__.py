from etcd3_autoconf._client import Client
from etcd3_autoconf._config import (ENV_ETCD3_CA, ENV_ETCD3_DOMAIN,
                                    ENV_ETCD3_ENDPOINT, ENV_ETCD3_PASSWORD,
                                    ENV_ETCD3_TLS, ENV_ETCD3_TLS_CERT,
                                    ENV_ETCD3_TLS_KEY, ENV_ETCD3_USER,
                                    ConnectionConfig, Flags, add_arguments,
                                    build_config, new_client, new_from_dns,
                                    new_tls_from_dns)
from etcd3_autoconf._dns import (SRV_CLIENT, SRV_CLIENT_SSL,
                                 fill_config_from_dns, resolve_endpoints)
from etcd3_autoconf._errors import (CertificateDecodeError,
                                    CertificateParseError,
                                    ClientConstructionError,
                                    ConfigurationError, Error,
                                    KeyPairLoadError, ResolutionError,
                                    TrustStoreError)
from etcd3_autoconf._lazy import LazyClient
from etcd3_autoconf._tls import ClientCertificate, TrustConfig, new_trust_config

__all__ = [
    'CertificateDecodeError',
    'CertificateParseError',
    'Client',
    'ClientCertificate',
    'ClientConstructionError',
    'ConfigurationError',
    'ConnectionConfig',
    'Error',
    'Flags',
    'KeyPairLoadError',
    'LazyClient',
    'ResolutionError',
    'SRV_CLIENT',
    'SRV_CLIENT_SSL',
    'TrustConfig',
    'TrustStoreError',
    'add_arguments',
    'build_config',
    'client',
    'fill_config_from_dns',
    'new_client',
    'new_from_dns',
    'new_tls_from_dns',
    'new_trust_config',
    'resolve_endpoints',
]


def _new_default_client():
    return new_client(Flags.from_env())


_default_clt = LazyClient(_new_default_client)


def client():
    """
    Returns the process wide client configured from ETCD3_* environment
    variables. It is created on first use; if that fails the error is
    raised on every call.
    """
    return _default_clt.get()
