from slowapi import Limiter
from slowapi.util import get_remote_address

# create_app switches the limiter off when Settings.testing is set
limiter = Limiter(key_func=get_remote_address)


def rate_limit(limit: str):
    return limiter.limit(limit)
