import logging
from threading import Lock

import grpc
from google.protobuf import descriptor_pb2, descriptor_pool, message_factory

from etcd3_autoconf import _utils

# It was observed in production that during failovers timeouts are getting
# really high. Thundering herd of reconnections is probably at play here.
_DEFAULT_REQUEST_TIMEOUT = 30  # Seconds

_AUTHENTICATE_METHOD = '/etcdserverpb.Auth/Authenticate'

_log = logging.getLogger(__name__)


def _new_auth_messages():
    """
    Describes the etcdserverpb AuthenticateRequest/Response messages. Only the
    fields needed to obtain a token are declared, the rest of the response is
    kept as unknown fields.
    """
    fdp = descriptor_pb2.FileDescriptorProto(
        name='etcd3_autoconf/auth.proto', package='etcdserverpb',
        syntax='proto3')
    string_field = dict(type=descriptor_pb2.FieldDescriptorProto.TYPE_STRING,
                        label=descriptor_pb2.FieldDescriptorProto.LABEL_OPTIONAL)

    rq = fdp.message_type.add(name='AuthenticateRequest')
    rq.field.add(name='name', number=1, json_name='name', **string_field)
    rq.field.add(name='password', number=2, json_name='password',
                 **string_field)

    rs = fdp.message_type.add(name='AuthenticateResponse')
    rs.field.add(name='token', number=2, json_name='token', **string_field)

    pool = descriptor_pool.DescriptorPool()
    pool.AddSerializedFile(fdp.SerializeToString())
    return (
        message_factory.GetMessageClass(
            pool.FindMessageTypeByName('etcdserverpb.AuthenticateRequest')),
        message_factory.GetMessageClass(
            pool.FindMessageTypeByName('etcdserverpb.AuthenticateResponse')))


AuthenticateRequest, AuthenticateResponse = _new_auth_messages()


class Client(object):
    """
    Thin etcd client handle. It owns a gRPC channel to one of the configured
    endpoints and leaves RPC stubs to the caller. Endpoints are tried in the
    order given, so the first one is the preferred one.
    """

    def __init__(self, endpoints, user=None, password=None, tls_config=None,
                 timeout=None):
        if isinstance(endpoints, str):
            endpoints = endpoints.split(',')
        if not endpoints:
            raise AttributeError('At least one endpoint should be specified')

        self._endpoint_rotation = _EndpointRotation(endpoints)
        self._tls_creds = None
        if tls_config is not None:
            self._tls_creds = tls_config.channel_credentials()

        self._auth_rq = _new_auth_rq(user, password)
        if self._auth_rq and not self._tls_creds:
            raise AttributeError('Authentication is only allowed via TLS')

        self._timeout = timeout or _DEFAULT_REQUEST_TIMEOUT

        self._grpc_channel_mu = Lock()
        self._grpc_channel = None

    @classmethod
    def from_config(cls, config, timeout=None):
        return cls(config.endpoints, config.username, config.password,
                   config.tls_config, timeout)

    @property
    def endpoints(self):
        return self._endpoint_rotation.endpoints

    @property
    def current_endpoint(self):
        return self._endpoint_rotation.current_endpoint

    @property
    def timeout(self):
        return self._timeout

    def channel(self):
        """
        Returns a gRPC channel to the current endpoint, dialing it first if
        there is none yet.
        """
        with self._grpc_channel_mu:
            if not self._grpc_channel:
                self._grpc_channel = self._dial(self.current_endpoint)

            return self._grpc_channel

    def reset_channel(self):
        """
        Closes the current channel and dials the next endpoint in order.
        """
        with self._grpc_channel_mu:
            self._close_grpc_channel_unsafe()
            endpoint = self._endpoint_rotation.rotate_endpoint()
            self._grpc_channel = self._dial(endpoint)
            return self._grpc_channel

    def close(self):
        with self._grpc_channel_mu:
            self._close_grpc_channel_unsafe()

    def _close_grpc_channel_unsafe(self):
        if not self._grpc_channel:
            return
        try:
            self._grpc_channel.close()
        except Exception:
            _log.exception('Failed to close Etcd client gRPC channel')

        self._grpc_channel = None

    def _dial(self, endpoint):
        _log.info('Dialing etcd endpoint %s', endpoint)
        target = _utils.normalize_endpoint(endpoint)
        if not self._tls_creds:
            return grpc.insecure_channel(target)

        creds = self._tls_creds

        if self._auth_rq:
            token = self._authenticate(target)
            if token:
                token_plugin = _TokenAuthMetadataPlugin(token)
                token_creds = grpc.metadata_call_credentials(token_plugin)
                creds = grpc.composite_channel_credentials(self._tls_creds,
                                                           token_creds)

        return grpc.secure_channel(target, creds)

    def _authenticate(self, target):
        grpc_channel = grpc.secure_channel(target, self._tls_creds)
        try:
            authenticate = grpc_channel.unary_unary(
                _AUTHENTICATE_METHOD,
                request_serializer=AuthenticateRequest.SerializeToString,
                response_deserializer=AuthenticateResponse.FromString)
            rs = authenticate(self._auth_rq, timeout=self._timeout)
            return rs.token
        except grpc.RpcError as e:
            if "authentication is not enabled" in (e.details() or ''):
                _log.error("server authentication disabled; skipping")
                return None
            raise
        finally:
            grpc_channel.close()


class _TokenAuthMetadataPlugin(grpc.AuthMetadataPlugin):

    def __init__(self, token):
        self._token = token

    def __call__(self, context, callback):
        metadata = (('token', self._token),)
        callback(metadata, None)


def _new_auth_rq(user, password):
    if bool(user) != bool(password):
        raise AttributeError('Neither or both user and password '
                             'should be specified')
    if not user:
        return None

    return AuthenticateRequest(name=user, password=password)


class _EndpointRotation(object):

    def __init__(self, endpoints):
        self._mu = Lock()
        self._endpoints = [ep.strip() for ep in endpoints]

    @property
    def endpoints(self):
        with self._mu:
            return list(self._endpoints)

    @property
    def current_endpoint(self):
        with self._mu:
            return self._endpoints[0]

    def rotate_endpoint(self):
        with self._mu:
            rotated_endpoint = self._endpoints[0]
            self._endpoints = self._endpoints[1:]
            self._endpoints.append(rotated_endpoint)
            return self._endpoints[0]
