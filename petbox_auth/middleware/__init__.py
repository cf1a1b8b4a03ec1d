from .cache_control import NoStoreMiddleware
from .logging import LoggingMiddleware
from .request_id import RequestIDMiddleware

__all__ = ["LoggingMiddleware", "NoStoreMiddleware", "RequestIDMiddleware"]
