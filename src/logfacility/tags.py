"""
Reserved record tags.
"""

TAG_INTERNAL = "logfacility.internal"
TAG_CAPTURED_STDOUT = "logfacility.captured-stdout"
TAG_CAPTURED_STDERR = "logfacility.captured-stderr"
TAG_UNCAUGHT_EXCEPTIONS = "logfacility.uncaught-exceptions"
TAG_INITIALIZED_EXCEPTIONS = "logfacility.initialized-exceptions"

# Tag of the records synthesized from each standard file descriptor.
CAPTURED_TAGS_BY_FD = {
    1: TAG_CAPTURED_STDOUT,
    2: TAG_CAPTURED_STDERR,
}
