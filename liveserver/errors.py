"""Exceptions raised by the live server."""


class LiveServerError(Exception):
    pass


class BindError(LiveServerError):
    """The listening socket could not be bound or the root does not resolve."""

    def __init__(self, port, reason):
        super().__init__(f"cannot serve on port {port}: {reason}")
        self.port = port
        self.reason = reason


class WatchError(LiveServerError):
    pass


class PathRejected(LiveServerError):
    NOT_FOUND = "not-found"
    FORBIDDEN = "forbidden"

    def __init__(self, request_path, reason=NOT_FOUND):
        super().__init__(f"{request_path}: {reason}")
        self.request_path = request_path
        self.reason = reason


class InstanceNotFound(LiveServerError, LookupError):
    def __init__(self, port):
        super().__init__(f"no live-server instance on port {port}")
        self.port = port
