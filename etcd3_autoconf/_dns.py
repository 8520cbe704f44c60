import logging
import random

import dns.exception
import dns.resolver

from etcd3_autoconf import _utils
from etcd3_autoconf._errors import ResolutionError

SRV_CLIENT = 'etcd-client'
SRV_CLIENT_SSL = 'etcd-client-ssl'

_log = logging.getLogger(__name__)


def resolve_endpoints(srv_type, domain):
    """
    Looks up etcd client SRV records of the given type under `domain` and
    returns them as a list of URLs in lookup order. The `etcd-client-ssl`
    type yields https URLs, anything else http.

    A lookup that succeeds with no records returns an empty list; deciding
    whether that is fatal is left to the caller.
    """
    scheme = 'https' if srv_type == SRV_CLIENT_SSL else 'http'
    if not domain:
        raise ResolutionError('No domain given to look up %s records' %
                              (srv_type,))

    try:
        srvs = lookup_srv(srv_type, 'tcp', domain)
    except dns.exception.DNSException as err:
        raise ResolutionError('Failed to look up _%s._tcp.%s: %s' %
                              (srv_type, domain, err)) from err

    endpoints = []
    for target, port in srvs:
        endpoints.append('%s://%s' % (scheme,
                                      _utils.join_host_port(target, port)))

    _log.info('Endpoints resolved from _%s._tcp.%s: %s',
              srv_type, domain, endpoints)
    return endpoints


def fill_config_from_dns(config, srv_type, domain):
    """
    Appends endpoints discovered under `domain` to a ConnectionConfig.
    """
    config.endpoints.extend(resolve_endpoints(srv_type, domain))


def lookup_srv(service, proto, domain):
    """
    Returns (target, port) tuples for _service._proto.domain ordered by
    priority and, within a priority, shuffled by weight as RFC 2782
    describes.
    """
    qname = '_%s._%s.%s' % (service, proto, domain)
    answer = dns.resolver.resolve(qname, 'SRV', raise_on_no_answer=False)

    by_priority = {}
    for rr in answer:
        by_priority.setdefault(rr.priority, []).append(rr)

    srvs = []
    for priority in sorted(by_priority):
        for rr in _shuffle_by_weight(by_priority[priority]):
            target = rr.target.to_text(omit_final_dot=True)
            srvs.append((target, rr.port))

    return srvs


def _shuffle_by_weight(rrs):
    rrs = list(rrs)
    total = sum(rr.weight for rr in rrs)
    ordered = []
    while rrs and total > 0:
        n = random.randint(0, total)
        for i, rr in enumerate(rrs):
            n -= rr.weight
            if n <= 0:
                ordered.append(rrs.pop(i))
                total -= rr.weight
                break

    # Zero weight records keep their wire order at the end.
    return ordered + rrs
