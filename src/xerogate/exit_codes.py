"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~xerogate.exceptions.XerogateError` subclass.
Wrapper scripts can inspect the exit code to tell a rejected login from an
unreachable provider without parsing stderr.

Example::

    $ xerogate auth ensure
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- no usable credential
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""Invalid arguments or configuration (missing client id, bad redirect URI)."""

EXIT_AUTH_FAILURE = 3
"""Authentication failed or no tenant could be selected."""

EXIT_API_ERROR = 5
"""The accounting API rejected a request made after authentication."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_STORAGE_ERROR = 7
"""The data directory could not be read or written."""
