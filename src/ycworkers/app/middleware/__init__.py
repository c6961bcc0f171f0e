from ycworkers.app.middleware.logging import LoggingMiddleware

__all__ = ["LoggingMiddleware"]
