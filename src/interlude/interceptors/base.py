"""
Base classes for interceptors.

An interceptor is a named bundle of up to three optional callbacks that wrap
a unit of work (usually a chat model call):

- enter(ctx) -> ctx: runs forward through the chain before the call
- leave(ctx) -> ctx: runs backward through the chain after the call
- error(ctx, exc) -> ctx: runs backward while an error is active

All callbacks receive and return a Context. The Context is immutable;
callbacks return a modified copy (``ctx.evolve(...)``, ``ctx.terminate()``,
``ctx.with_metadata(...)``) instead of mutating it.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

EnterFn = Callable[["Context"], "Context"]
LeaveFn = Callable[["Context"], "Context"]
ErrorFn = Callable[["Context", BaseException], "Context"]

PHASES = ("enter", "leave", "error")


class InterceptorDefinitionError(ValueError):
    """Raised when an interceptor cannot be built from the given form."""


class ContractViolation(TypeError):
    """Raised when a callback returns something other than a Context.

    This is a programming error, not a runtime failure: it aborts execution
    and is never offered to error handlers.
    """

    def __init__(self, interceptor: Interceptor, phase: str, result: Any) -> None:
        self.interceptor = interceptor
        self.phase = phase
        self.result = result
        super().__init__(
            f"Interceptor {interceptor.name or 'anonymous'!r} :{phase} must return "
            f"a Context. Got: {type(result).__name__}"
        )


class Interceptor:
    """Base class for all interceptors.

    Subclasses implement only the phases they need as methods named
    ``enter``, ``leave`` and ``error``. A phase left as None is absent:
    enter/leave default to identity and the error phase skips the entry.

    Example:
        ```python
        @dataclass
        class Announce(Interceptor):
            name: str = "announce"

            def enter(self, ctx: Context) -> Context:
                print(f"Calling with {len(ctx.effective_request)} messages")
                return ctx
        ```
    """

    name: str | None = None
    enter: EnterFn | None = None
    leave: LeaveFn | None = None
    error: ErrorFn | None = None

    def phases(self) -> list[str]:
        """Names of the callbacks this interceptor provides."""
        return [phase for phase in PHASES if getattr(self, phase) is not None]

    def describe(self) -> dict[str, Any]:
        """Human-readable summary for diagnostics."""
        return {"name": self.name or "anonymous", "phases": self.phases()}


@dataclass(frozen=True)
class FunctionInterceptor(Interceptor):
    """An interceptor assembled from plain callables.

    At least one of enter, leave or error must be given.
    """

    name: str | None = None
    enter: EnterFn | None = None
    leave: LeaveFn | None = None
    error: ErrorFn | None = None

    def __post_init__(self) -> None:
        present = [p for p in PHASES if getattr(self, p) is not None]
        if not present:
            raise InterceptorDefinitionError(
                "Interceptor must have at least one of enter, leave, or error"
            )
        for phase in present:
            if not callable(getattr(self, phase)):
                raise InterceptorDefinitionError(
                    f"Interceptor {phase} must be callable, got {type(getattr(self, phase)).__name__}"
                )


@dataclass(frozen=True)
class Context:
    """Per-call state threaded through the enter, leave and error phases.

    Attributes:
        target: What the unit of work runs against (e.g. a chat model).
        request: Original request payload (e.g. messages). Never replaced.
        options: Original options. Never replaced.
        transformed_request: Override for request, set by interceptors.
        transformed_options: Override for options, set by interceptors.
        response: Unit of work result, None until set.
        error: Currently active error, None when none.
        queue: Interceptors not yet entered, in chain order.
        stack: Interceptors already entered; the last element is the top.
        terminated: True stops the enter phase from advancing.
        metadata: Scratch space shared by interceptors for this call.
    """

    target: Any
    request: Any
    options: Mapping[str, Any] = field(default_factory=dict)
    transformed_request: Any = None
    transformed_options: Mapping[str, Any] | None = None
    response: Any = None
    error: BaseException | None = None
    queue: tuple[Interceptor, ...] = ()
    stack: tuple[Interceptor, ...] = ()
    terminated: bool = False
    metadata: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def create(
        cls,
        target: Any,
        request: Any,
        options: Mapping[str, Any] | None = None,
        queue: Any = (),
        metadata: Mapping[str, Any] | None = None,
    ) -> Context:
        """Build an initial context.

        Args:
            target: Required unit-of-work target.
            request: Required request payload.
            options: Options mapping (default: empty).
            queue: Interceptor-likes, normalized with chain().
            metadata: Initial metadata.
        """
        if target is None:
            raise ValueError("target is required")
        if request is None:
            raise ValueError("request is required")
        return cls(
            target=target,
            request=request,
            options=dict(options or {}),
            queue=tuple(chain(queue)),
            metadata=dict(metadata or {}),
        )

    # -- replacement helpers ---------------------------------------------------

    def evolve(self, **changes: Any) -> Context:
        """Return a copy with the given fields replaced."""
        return dataclasses.replace(self, **changes)

    def terminate(self) -> Context:
        """Stop the enter phase; no further queued interceptors run.

        Interceptors already on the stack still get their leave phase.
        """
        return dataclasses.replace(self, terminated=True)

    def with_error(self, error: BaseException) -> Context:
        """Set the active error."""
        return dataclasses.replace(self, error=error)

    def clear_error(self) -> Context:
        """Remove the active error, allowing processing to continue."""
        return dataclasses.replace(self, error=None)

    def with_response(self, response: Any) -> Context:
        """Set the response."""
        return dataclasses.replace(self, response=response)

    def with_metadata(self, **items: Any) -> Context:
        """Return a copy with metadata entries added or replaced."""
        return dataclasses.replace(self, metadata={**self.metadata, **items})

    def without_metadata(self, *keys: str) -> Context:
        """Return a copy with the given metadata keys removed."""
        return dataclasses.replace(
            self, metadata={k: v for k, v in self.metadata.items() if k not in keys}
        )

    def enqueue(self, *interceptors: Any) -> Context:
        """Add interceptors to the end of the queue."""
        return dataclasses.replace(self, queue=self.queue + tuple(chain(interceptors)))

    def enqueue_before(self, *interceptors: Any) -> Context:
        """Add interceptors to the front of the queue."""
        return dataclasses.replace(self, queue=tuple(chain(interceptors)) + self.queue)

    # -- views -----------------------------------------------------------------

    @property
    def effective_request(self) -> Any:
        """The transformed request if set, otherwise the original."""
        if self.transformed_request is not None:
            return self.transformed_request
        return self.request

    @property
    def effective_options(self) -> Mapping[str, Any]:
        """The transformed options if set, otherwise the original."""
        if self.transformed_options is not None:
            return self.transformed_options
        return self.options

    def describe(self) -> dict[str, Any]:
        """Human-readable summary of the context state."""
        request = self.effective_request
        return {
            "queue_size": len(self.queue),
            "stack_size": len(self.stack),
            "has_error": self.error is not None,
            "terminated": self.terminated,
            "has_response": self.response is not None,
            "request_size": len(request) if hasattr(request, "__len__") else None,
        }


# =============================================================================
# Construction surface
# =============================================================================

def _from_descriptor(descriptor: Mapping[str, Any]) -> FunctionInterceptor:
    unknown = set(descriptor) - {"name", *PHASES}
    if unknown:
        raise InterceptorDefinitionError(
            f"Unknown interceptor keys: {sorted(str(k) for k in unknown)}"
        )
    return FunctionInterceptor(**descriptor)


def interceptor(*args: Any, **kwargs: Any) -> Interceptor:
    """Create an interceptor from various forms.

    Accepts:
    - An Interceptor instance (returned as is)
    - A mapping with name/enter/leave/error keys
    - A single callable (treated as enter)
    - Alternating key/value arguments, or keyword arguments

    Examples:
        ```python
        interceptor({"name": "audit", "enter": lambda ctx: ctx})
        interceptor(lambda ctx: ctx)
        interceptor("name", "audit", "leave", record)
        interceptor(name="audit", error=on_error)
        ```
    """
    if not args:
        if not kwargs:
            raise InterceptorDefinitionError("interceptor() requires a definition")
        return _from_descriptor(kwargs)

    if len(args) == 1 and not kwargs:
        form = args[0]
        if isinstance(form, Interceptor):
            if not is_interceptor(form):
                raise InterceptorDefinitionError(
                    "Interceptor must have at least one of enter, leave, or error"
                )
            return form
        if isinstance(form, Mapping):
            return _from_descriptor(form)
        if callable(form):
            return FunctionInterceptor(enter=form)
        raise InterceptorDefinitionError(
            f"Invalid interceptor form: {type(form).__name__} "
            "(expected Interceptor, mapping or callable)"
        )

    if len(args) % 2:
        raise InterceptorDefinitionError("Key/value arguments must come in pairs")
    descriptor = dict(zip(args[::2], args[1::2]))
    descriptor.update(kwargs)
    return _from_descriptor(descriptor)


def is_interceptor(value: Any) -> bool:
    """Check if value is a usable interceptor."""
    return isinstance(value, Interceptor) and bool(value.phases())


def chain(*definitions: Any) -> list[Interceptor]:
    """Build an interceptor list from interceptor definitions.

    Each element can be an interceptor, a mapping, a callable or a nested
    list/tuple (flattened recursively). None entries are dropped.
    """
    result: list[Interceptor] = []
    for definition in definitions:
        if definition is None:
            continue
        if isinstance(definition, (list, tuple)):
            result.extend(chain(*definition))
        else:
            result.append(interceptor(definition))
    return result


__all__ = [
    "Interceptor",
    "FunctionInterceptor",
    "Context",
    "ContractViolation",
    "InterceptorDefinitionError",
    "interceptor",
    "is_interceptor",
    "chain",
]
