import logging
from threading import Lock

_log = logging.getLogger(__name__)


class LazyClient(object):
    """
    Runs `build` once, on the first call to `get`, and hands out its result
    from then on. Concurrent first callers block until the build finishes.

    A failed build is not retried: the very same exception is raised to
    every caller for the lifetime of the instance.
    """

    def __init__(self, build):
        self._build = build
        self._mu = Lock()
        self._initialized = False
        self._client = None
        self._error = None
        self._error_tb = None

    @property
    def initialized(self):
        return self._initialized

    def get(self):
        if not self._initialized:
            with self._mu:
                if not self._initialized:
                    self._initialize_unsafe()

        if self._error is not None:
            raise self._error.with_traceback(self._error_tb)

        return self._client

    def _initialize_unsafe(self):
        try:
            self._client = self._build()
        except Exception as err:
            _log.error('Failed to initialize etcd client: %s', err)
            self._error = err
            self._error_tb = err.__traceback__

        self._initialized = True
