class HopeLineError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code = 500

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self):
        return {"error": self.message}


class ValidationError(HopeLineError):
    status_code = 400


class NotFoundError(HopeLineError):
    status_code = 404


class WeatherError(HopeLineError):
    status_code = 502


class TokenError(HopeLineError):
    """Raised by the Token04 generator; `code` mirrors the vendor error codes."""

    status_code = 500

    def __init__(self, code, message):
        super().__init__(message)
        self.code = code

    def to_dict(self):
        return {"error": self.message, "code": self.code}
