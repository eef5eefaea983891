"""
=============================================================================
EXACT-PATH ROUTER
=============================================================================

Maps request paths to handlers.

=============================================================================
MATCHING RULES
=============================================================================

Lookup is a plain dictionary hit on the request path, byte for byte:

    Registered          Request path        Result
    ──────────────────  ──────────────────  ────────────────
    /api/data           /api/data           handler
    /api/data           /api/data/          404 (trailing slash matters)
    /api/data           /api/data?x=1       404 (query is part of the path)
    /api/data           /API/data           404 (case matters)

No prefixes, no wildcards, no :params, no method filtering.

=============================================================================
LIFECYCLE
=============================================================================

    startup                     serving
    ───────────────────────     ─────────────────────────────────────
    register() / route()   ──►  freeze()  ──►  dispatch() from any
    (single thread)                             worker thread

freeze() swaps the table for a read-only snapshot. Workers only ever
read it, so no lock is needed. Registering after that raises.

=============================================================================
"""

from abc import ABC, abstractmethod
from types import MappingProxyType
from typing import Callable, Mapping, Optional, Union

from .request import HTTPRequest
from .response import HTTPResponse


# A plain function handler: mutates the response, returns nothing
HandlerFunc = Callable[[HTTPRequest, HTTPResponse], None]


class Handler(ABC):
    """
    A unit of application logic bound to a path.

    Subclasses implement handle(), which inspects the request and
    mutates the response (status, headers, body). The return value
    is ignored.
    """

    @abstractmethod
    def handle(self, request: HTTPRequest, response: HTTPResponse) -> None:
        """Fill in the response for this request."""


class FunctionHandler(Handler):
    """Adapts a plain function to the Handler interface."""

    def __init__(self, func: HandlerFunc):
        self.func = func

    def handle(self, request: HTTPRequest, response: HTTPResponse) -> None:
        self.func(request, response)

    def __repr__(self) -> str:
        name = getattr(self.func, "__qualname__", repr(self.func))
        return f"FunctionHandler({name})"


class Router:
    """
    Exact-match route table.

    Usage:
        router = Router()

        @router.route("/")
        def index(request, response):
            response.set_content("<h1>Hello</h1>")

        router.register("/index.html", StaticFileHandler("public/index.html"))

        router.freeze()
        handler = router.dispatch("/")   # Handler or None
    """

    def __init__(self):
        self._routes: dict[str, Handler] = {}
        self._snapshot: Optional[Mapping[str, Handler]] = None

    # =========================================================================
    # REGISTRATION (startup only)
    # =========================================================================

    def register(self, path: str, handler: Union[Handler, HandlerFunc]) -> Handler:
        """
        Bind a handler to an exact path.

        A later registration for the same path replaces the earlier one.

        Args:
            path: Exact request path to match.
            handler: A Handler, or a function (request, response) -> None.

        Returns:
            The stored Handler (functions come back wrapped).

        Raises:
            RuntimeError: If the router has been frozen.
            TypeError: If handler is neither a Handler nor callable.
        """
        if self._snapshot is not None:
            raise RuntimeError(f"Cannot register {path!r}: route table is frozen")

        if not isinstance(handler, Handler):
            if not callable(handler):
                raise TypeError(f"Handler for {path!r} must be a Handler or callable")
            handler = FunctionHandler(handler)

        self._routes[path] = handler
        return handler

    def route(self, path: str) -> Callable[[HandlerFunc], HandlerFunc]:
        """
        Decorator form of register().

        The decorated function is returned unchanged so it can still
        be called directly (handy in tests).
        """
        def decorator(func: HandlerFunc) -> HandlerFunc:
            self.register(path, func)
            return func
        return decorator

    def freeze(self) -> None:
        """Switch to a read-only snapshot. Safe to call twice."""
        if self._snapshot is None:
            self._snapshot = MappingProxyType(dict(self._routes))

    @property
    def frozen(self) -> bool:
        return self._snapshot is not None

    # =========================================================================
    # LOOKUP
    # =========================================================================

    def dispatch(self, path: str) -> Optional[Handler]:
        """
        Find the handler for an exact path.

        Returns:
            The registered Handler, or None for "not found".
        """
        table = self._snapshot if self._snapshot is not None else self._routes
        return table.get(path)

    @property
    def paths(self) -> list[str]:
        """Registered paths, in registration order."""
        return list(self._routes)

    def __contains__(self, path: str) -> bool:
        return path in self._routes

    def __len__(self) -> int:
        return len(self._routes)
