"""Built-in CLI command groups (``auth``, ``config``)."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

import typer


@contextmanager
def exit_on_error() -> Iterator[None]:
    """Turn a :class:`~xerogate.exceptions.XerogateError` into an error line and exit code."""
    from xerogate.exceptions import XerogateError
    from xerogate.output import error

    try:
        yield
    except XerogateError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
