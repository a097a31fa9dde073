"""Numeric process exit codes for the ``codecapi`` command line.

Each constant maps to an error category and is referenced by the
corresponding :class:`~codecapi.exceptions.CodecApiError` subclass.
Scripts wrapping ``codecapi inspect`` can branch on the exit code to tell a
broken document apart from a network failure without parsing stderr.

Example::

    $ codecapi inspect models broken.yaml
    $ echo $?
    8   # EXIT_COMPILE_ERROR -- the document could not be compiled
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""An operation was invoked with missing or unknown arguments."""

EXIT_HTTP_ERROR = 5
"""The remote API answered with a non-accepted status code."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_SPEC_PARSE_ERROR = 7
"""The OpenAPI document could not be loaded or has an unsupported version."""

EXIT_COMPILE_ERROR = 8
"""The OpenAPI document was loaded but could not be compiled."""

EXIT_DECODE_ERROR = 9
"""A response body did not match the operation's declared type."""
