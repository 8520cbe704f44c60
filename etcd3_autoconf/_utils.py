def join_host_port(host, port):
    if ':' in host:
        return '[%s]:%d' % (host, port)

    return '%s:%d' % (host, port)


def normalize_endpoint(ep):
    parts = ep.lower().strip().split('//')
    return parts[-1]


def to_bool(val):
    if isinstance(val, bool):
        return val

    val = val.strip().lower()
    if val in ('1', 'true', 'yes', 'on'):
        return True
    if val in ('0', 'false', 'no', 'off'):
        return False

    raise ValueError('Not a boolean: %r' % (val,))
