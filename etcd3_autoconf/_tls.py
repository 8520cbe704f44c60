import base64
import binascii
import logging
import os
import re
import ssl

import grpc
from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization

from etcd3_autoconf._errors import (CertificateDecodeError,
                                    CertificateParseError, KeyPairLoadError,
                                    TrustStoreError)

_PEM_BLOCK_RE = re.compile(
    rb'-----BEGIN ([^-\r\n]+)-----\r?\n(.*?)-----END \1-----', re.DOTALL)

_log = logging.getLogger(__name__)


class ClientCertificate(object):

    def __init__(self, certificate_chain, private_key):
        self.certificate_chain = list(certificate_chain)
        self.private_key = private_key

    @property
    def certificate(self):
        return self.certificate_chain[0]

    def certificate_chain_pem(self):
        return b''.join(c.public_bytes(serialization.Encoding.PEM)
                        for c in self.certificate_chain)

    def private_key_pem(self):
        return self.private_key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption())


class TrustConfig(object):
    """
    Root certificates used to verify etcd servers, plus the client
    certificates presented to them.
    """

    def __init__(self, root_certificates=()):
        self._root_certificates = []
        self._fingerprints = set()
        self.client_certificates = []
        for cert in root_certificates:
            self.add_root_certificate(cert)

    @property
    def root_certificates(self):
        return list(self._root_certificates)

    def add_root_certificate(self, cert):
        fingerprint = cert.fingerprint(hashes.SHA256())
        if fingerprint in self._fingerprints:
            return

        self._fingerprints.add(fingerprint)
        self._root_certificates.append(cert)

    def add_client_certificate(self, client_cert):
        self.client_certificates.append(client_cert)

    def root_certificates_pem(self):
        return b''.join(c.public_bytes(serialization.Encoding.PEM)
                        for c in self._root_certificates)

    def channel_credentials(self):
        private_key = None
        certificate_chain = None
        if self.client_certificates:
            client_cert = self.client_certificates[0]
            private_key = client_cert.private_key_pem()
            certificate_chain = client_cert.certificate_chain_pem()

        return grpc.ssl_channel_credentials(self.root_certificates_pem(),
                                            private_key, certificate_chain)


def new_trust_config(root_ca=None, client_cert=None, client_key=None):
    """
    Assembles a TrustConfig from the platform trust store, an optional extra
    root CA and an optional client certificate/key pair.

    The client pair is only loaded when both paths are given. If just one of
    them is set no client certificate is configured and no error is raised.
    """
    trust_config = TrustConfig(load_system_roots())

    if root_ca:
        trust_config.add_root_certificate(load_root_ca(root_ca))

    if client_cert and client_key:
        trust_config.add_client_certificate(
            load_key_pair(client_cert, client_key))
    elif client_cert or client_key:
        _log.warning('Only one of client cert (%s) and client key (%s) is '
                     'set, no client certificate will be used',
                     client_cert, client_key)

    return trust_config


def load_system_roots():
    paths = ssl.get_default_verify_paths()
    certs = []

    for cafile in (paths.cafile, paths.openssl_cafile):
        if not cafile or not os.path.isfile(cafile):
            continue

        try:
            certs.extend(x509.load_pem_x509_certificates(_read_file(cafile)))
        except (OSError, ValueError) as err:
            raise TrustStoreError('Failed to load system CA file %s: %s' %
                                  (cafile, err)) from err
        break

    for capath in (paths.capath, paths.openssl_capath):
        if not capath or not os.path.isdir(capath):
            continue

        for filename in sorted(os.listdir(capath)):
            filepath = os.path.join(capath, filename)
            if not os.path.isfile(filepath):
                continue
            try:
                certs.extend(x509.load_pem_x509_certificates(
                    _read_file(filepath)))
            except (OSError, ValueError):
                _log.debug('Skipping %s in system CA directory', filepath)
        break

    if not certs:
        raise TrustStoreError('No system root certificates found (cafile=%s, '
                              'capath=%s)' % (paths.openssl_cafile,
                                              paths.openssl_capath))

    _log.debug('Loaded %d system root certificates', len(certs))
    return certs


def load_root_ca(path):
    """
    Reads a PEM file and parses its first block as an X.509 certificate.
    Any further blocks in the file are ignored.
    """
    try:
        data = _read_file(path)
    except OSError as err:
        raise CertificateDecodeError('Error reading certificate %s: %s' %
                                     (path, err)) from err

    der = decode_pem(data)
    if der is None:
        raise CertificateDecodeError('Error decoding certificate ' + path)

    try:
        return x509.load_der_x509_certificate(der)
    except ValueError as err:
        raise CertificateParseError('Error parsing certificate %s: %s' %
                                    (path, err)) from err


def decode_pem(data):
    """
    Returns the payload of the first PEM block in `data`, or None if there
    is no block or its body is not valid base64.
    """
    m = _PEM_BLOCK_RE.search(data)
    if not m:
        return None

    body = b''.join(m.group(2).split())
    try:
        return base64.b64decode(body, validate=True)
    except binascii.Error:
        return None


def load_key_pair(cert_path, key_path):
    try:
        chain = x509.load_pem_x509_certificates(_read_file(cert_path))
        private_key = serialization.load_pem_private_key(
            _read_file(key_path), password=None)
    except (OSError, ValueError, TypeError, UnsupportedAlgorithm) as err:
        raise KeyPairLoadError('Failed to load key pair %s, %s: %s' %
                               (cert_path, key_path, err)) from err

    if (_public_key_der(chain[0].public_key()) !=
            _public_key_der(private_key.public_key())):
        raise KeyPairLoadError('Private key %s does not match certificate %s'
                               % (key_path, cert_path))

    return ClientCertificate(chain, private_key)


def _public_key_der(public_key):
    return public_key.public_bytes(
        serialization.Encoding.DER,
        serialization.PublicFormat.SubjectPublicKeyInfo)


def _read_file(filename):
    with open(filename, 'rb') as f:
        return f.read()
