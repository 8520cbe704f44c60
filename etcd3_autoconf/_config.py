import argparse
import logging
import os

from etcd3_autoconf import _dns, _tls, _utils
from etcd3_autoconf._client import Client
from etcd3_autoconf._errors import (ClientConstructionError,
                                    ConfigurationError, ResolutionError)

ENV_ETCD3_CA = 'ETCD3_CA'
ENV_ETCD3_DOMAIN = 'ETCD3_DOMAIN'
ENV_ETCD3_ENDPOINT = 'ETCD3_ENDPOINT'
ENV_ETCD3_PASSWORD = 'ETCD3_PASSWORD'
ENV_ETCD3_USER = 'ETCD3_USER'
ENV_ETCD3_TLS = 'ETCD3_TLS'
ENV_ETCD3_TLS_CERT = 'ETCD3_TLS_CERT'
ENV_ETCD3_TLS_KEY = 'ETCD3_TLS_KEY'

_log = logging.getLogger(__name__)


class Flags(object):
    """
    Settings that determine how to reach etcd. Empty strings mean "not set".
    """

    def __init__(self, endpoint='', domain='', user='', password='',
                 root_ca='', client_cert='', client_key='', use_tls=True):
        self.endpoint = endpoint or ''
        self.domain = domain or ''
        self.user = user or ''
        self.password = password or ''
        self.root_ca = root_ca or ''
        self.client_cert = client_cert or ''
        self.client_key = client_key or ''
        self.use_tls = use_tls

    @classmethod
    def from_env(cls, environ=None):
        environ = os.environ if environ is None else environ
        use_tls = environ.get(ENV_ETCD3_TLS, '')
        return cls(endpoint=environ.get(ENV_ETCD3_ENDPOINT),
                   domain=environ.get(ENV_ETCD3_DOMAIN),
                   user=environ.get(ENV_ETCD3_USER),
                   password=environ.get(ENV_ETCD3_PASSWORD),
                   root_ca=environ.get(ENV_ETCD3_CA),
                   client_cert=environ.get(ENV_ETCD3_TLS_CERT),
                   client_key=environ.get(ENV_ETCD3_TLS_KEY),
                   use_tls=_env_bool(ENV_ETCD3_TLS, use_tls, True))

    @classmethod
    def from_args(cls, args):
        return cls(endpoint=args.etcd_endpoint,
                   domain=args.etcd_domain,
                   user=args.etcd_user,
                   password=args.etcd_password,
                   root_ca=args.etcd_root_ca,
                   client_cert=args.etcd_client_cert,
                   client_key=args.etcd_client_key,
                   use_tls=args.etcd_use_tls)

    def __repr__(self):
        return ('Flags(endpoint=%r, domain=%r, user=%r, root_ca=%r, '
                'client_cert=%r, client_key=%r, use_tls=%r)' % (
                    self.endpoint, self.domain, self.user, self.root_ca,
                    self.client_cert, self.client_key, self.use_tls))


def _env_bool(name, val, default):
    if not val:
        return default

    try:
        return _utils.to_bool(val)
    except ValueError as err:
        raise ConfigurationError('Invalid value of %s: %s' %
                                 (name, err)) from err


def add_arguments(parser, environ=None):
    """
    Registers the --etcd-* flags on an argparse parser. Defaults come from
    the ETCD3_* environment variables.
    """
    defaults = Flags.from_env(environ)
    group = parser.add_argument_group('etcd')
    group.add_argument(
        '--etcd-endpoint', default=defaults.endpoint,
        help='Explicitly set etcd endpoint to this value. '
             'Overrides --etcd-domain.')
    group.add_argument(
        '--etcd-domain', default=defaults.domain,
        help='Domain name to retrieve etcd configuration from')
    group.add_argument(
        '--etcd-user', default=defaults.user,
        help='User name to specify to etcd (not recommended)')
    group.add_argument(
        '--etcd-password', default=defaults.password,
        help='Password to specify to etcd (not recommended)')
    group.add_argument(
        '--etcd-root-ca', default=defaults.root_ca,
        help='Path to an etcd root CA certificate')
    group.add_argument(
        '--etcd-client-cert', default=defaults.client_cert,
        help='Path to a TLS client certificate')
    group.add_argument(
        '--etcd-client-key', default=defaults.client_key,
        help='Path to a TLS client key')
    group.add_argument(
        '--etcd-use-tls', type=_parse_bool, nargs='?', const=True,
        default=defaults.use_tls,
        help='Whether to use TLS for the etcd client')
    return parser


def _parse_bool(val):
    try:
        return _utils.to_bool(val)
    except ValueError as err:
        raise argparse.ArgumentTypeError(str(err))


class ConnectionConfig(object):

    def __init__(self, endpoints=None, username='', password='',
                 tls_config=None):
        self.endpoints = list(endpoints or [])
        self.username = username
        self.password = password
        self.tls_config = tls_config

    def __repr__(self):
        return 'ConnectionConfig(endpoints=%r, username=%r, password=%s, ' \
               'tls=%s)' % (self.endpoints, self.username,
                            '***' if self.password else "''",
                            self.tls_config is not None)


def build_config(flags):
    """
    Produces a ConnectionConfig from flags. With TLS the trust config is
    assembled first and endpoints come from etcd-client-ssl records,
    otherwise from etcd-client records. A non-empty explicit endpoint skips
    DNS discovery altogether.
    """
    config = ConnectionConfig(username=flags.user, password=flags.password)

    if flags.use_tls:
        config.tls_config = _tls.new_trust_config(
            flags.root_ca, flags.client_cert, flags.client_key)
        srv_type = _dns.SRV_CLIENT_SSL
    else:
        srv_type = _dns.SRV_CLIENT

    if flags.endpoint:
        config.endpoints.append(flags.endpoint)
        return config

    _dns.fill_config_from_dns(config, srv_type, flags.domain)
    if not config.endpoints:
        raise ResolutionError('No _%s._tcp records found for %s' %
                              (srv_type, flags.domain))

    return config


def new_client(flags, client_factory=None):
    """
    Builds a ConnectionConfig from flags and hands it to `client_factory`,
    Client.from_config by default.
    """
    config = build_config(flags)
    return _construct(config, client_factory)


def new_from_dns(domain, user='', password='', client_factory=None):
    """
    Creates a client for the plain text endpoints published under `domain`.
    """
    config = ConnectionConfig(username=user, password=password)
    _dns.fill_config_from_dns(config, _dns.SRV_CLIENT, domain)
    return _construct(config, client_factory)


def new_tls_from_dns(trust_config, domain, user='', password='',
                     client_factory=None):
    """
    Creates a client for the TLS endpoints published under `domain`.
    """
    config = ConnectionConfig(username=user, password=password,
                              tls_config=trust_config)
    _dns.fill_config_from_dns(config, _dns.SRV_CLIENT_SSL, domain)
    return _construct(config, client_factory)


def _construct(config, client_factory):
    client_factory = client_factory or Client.from_config
    try:
        clt = client_factory(config)
    except Exception as err:
        raise ClientConstructionError('Failed to create etcd client for %s: '
                                      '%s' % (config.endpoints, err)) from err

    _log.info('Etcd client created: %r', config)
    return clt
