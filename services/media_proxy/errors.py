"""Error taxonomy for the media proxy.

Each error carries the HTTP status the app answers with; the response body
is always empty.
"""

USAGE = "Usage: GET /<URL>/[cover.<ext>]"


class MediaProxyError(Exception):
    """Base class for every failure the proxy maps to a response status."""

    status_code = 500


class MalformedRequest(MediaProxyError):
    status_code = 400

    def __init__(self, reason: str):
        super().__init__(f"{reason}. {USAGE}")
        self.reason = reason


class ExtractionFailed(MediaProxyError):
    """The extractor could not be spawned, exited non-zero or produced no records."""

    status_code = 502


class NoMatchingRecord(MediaProxyError):
    """The extractor succeeded but none of its records is keyed by the reference."""

    status_code = 502

    def __init__(self, reference: str, keys: list[str]):
        super().__init__(
            f"extractor returned {len(keys)} record(s) but none has original_url == {reference!r}"
        )
        self.reference = reference
        self.keys = keys


class FieldMissing(MediaProxyError):
    status_code = 502

    def __init__(self, field: str, detail: str = "absent"):
        super().__init__(f'"{field}" is {detail} in metadata record')
        self.field = field


class NoMatchingThumbnail(MediaProxyError):
    status_code = 404

    def __init__(self, extension: str):
        super().__init__(f"no thumbnail url ends with {extension!r}")
        self.extension = extension


class InvalidTargetUrl(MediaProxyError):
    status_code = 502


class UpstreamError(MediaProxyError):
    """The outbound request to the origin failed at the transport level."""

    status_code = 502


class Timeout(MediaProxyError):
    status_code = 504


class ExtractorTimeout(Timeout, ExtractionFailed):
    status_code = 504


class UpstreamTimeout(Timeout, UpstreamError):
    status_code = 504
