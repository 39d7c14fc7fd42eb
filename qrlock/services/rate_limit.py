import logging
import threading
import time

import redis
from flask import current_app

from .errors import RateLimited

log = logging.getLogger(__name__)

_EXT = 'qrlock.kv'
_lock = threading.Lock()


class _MemStore:
    def __init__(self):
        self._data = {}
        self._exp = {}
        self._lock = threading.Lock()

    def _cleanup(self):
        now = time.time()
        expired = [k for k, ts in self._exp.items() if ts <= now]
        for k in expired:
            self._data.pop(k, None)
            self._exp.pop(k, None)

    def incr(self, key):
        with self._lock:
            self._cleanup()
            v = int(self._data.get(key, '0')) + 1
            self._data[key] = str(v)
            return v

    def expire(self, key, ttl):
        with self._lock:
            self._cleanup()
            self._exp[key] = time.time() + ttl


def store():
    """Key/value store for this app: Redis when reachable, else in-process."""
    app = current_app._get_current_object()
    kv = app.extensions.get(_EXT)
    if kv is not None:
        return kv
    with _lock:
        kv = app.extensions.get(_EXT)
        if kv is not None:
            return kv
        url = app.config.get('REDIS_URL')
        if app.config.get('USE_REDIS') and url:
            try:
                client = redis.from_url(url, decode_responses=True)
                # Test connection once; fallback to memory on failure
                client.ping()
                kv = client
            except redis.RedisError as e:
                log.warning('redis unavailable (%s), using in-process store', e)
        if kv is None:
            kv = _MemStore()
        app.extensions[_EXT] = kv
        return kv


def check_rate_ip(ip: str):
    limit = current_app.config.get('SCAN_RATE_LIMIT', 20)
    window = current_app.config.get('SCAN_RATE_WINDOW', 60)
    if not limit:
        return
    k = f"rl:scan:{ip}:{int(time.time() // window)}"
    kv = store()
    v = kv.incr(k)
    kv.expire(k, window)
    if v > limit:
        log.info('scan rate exceeded for %s', ip)
        raise RateLimited()
