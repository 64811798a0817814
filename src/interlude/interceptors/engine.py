"""
Interceptor chain execution.

Three phase executors drive a Context through its interceptors:

1. Enter phase: pop from the queue, push onto the stack, run ``enter``.
   Stops on an empty queue, termination, or an error.
2. Leave phase: pop from the stack (LIFO), run ``leave``. Stops only on an
   empty stack; an error raised by a leave callback is recorded and the
   remaining entries still leave.
3. Error phase: pop from the stack while an error is active, offering each
   ``error`` callback the chance to recover. Clearing the error stops the
   phase; entries below the recoverer stay on the stack.

The facade composes them around the unit of work:

    ctx = execute(ctx)          # enter (+ error phase if enter failed)
    ... call the unit of work, set ctx.response or ctx.error ...
    ctx = execute_leave(ctx)    # error phase, leave phase, error phase

Errors raised during the leave phase are never delivered to error
callbacks: by the time the leave phase finishes the stack is empty.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from interlude.interceptors.base import Context, ContractViolation, Interceptor


def _invoke(
    interceptor: Interceptor,
    phase: str,
    ctx: Context,
    call: Callable[[], Any],
) -> Context:
    """Run one callback, capturing runtime errors on ctx.

    ContractViolation is never captured.
    """
    try:
        result = call()
    except ContractViolation:
        raise
    except Exception as e:
        return ctx.with_error(e)
    if not isinstance(result, Context):
        raise ContractViolation(interceptor, phase, result)
    return result


def run_enter_phase(ctx: Context) -> Context:
    """Enter queued interceptors in chain order.

    On error the remaining queue is preserved untouched.
    """
    current = ctx
    while current.queue and not current.terminated and current.error is None:
        head, *rest = current.queue
        next_ctx = current.evolve(queue=tuple(rest), stack=current.stack + (head,))
        enter = head.enter
        if enter is None:
            current = next_ctx
        else:
            current = _invoke(head, "enter", next_ctx, lambda: enter(next_ctx))
    return current


def run_leave_phase(ctx: Context) -> Context:
    """Leave stacked interceptors in reverse order until the stack is empty."""
    current = ctx
    while current.stack:
        top = current.stack[-1]
        next_ctx = current.evolve(stack=current.stack[:-1])
        leave = top.leave
        if leave is None:
            current = next_ctx
        else:
            current = _invoke(top, "leave", next_ctx, lambda: leave(next_ctx))
    return current


def run_error_phase(ctx: Context) -> Context:
    """Offer the active error to stacked error handlers, top first.

    Each visited entry is consumed whether or not it has a handler. A handler
    that raises replaces the error and unwinding continues.
    """
    current = ctx
    while current.stack and current.error is not None:
        top = current.stack[-1]
        error = current.error
        next_ctx = current.evolve(stack=current.stack[:-1])
        handler = top.error
        if handler is None:
            current = next_ctx
        else:
            current = _invoke(top, "error", next_ctx, lambda: handler(next_ctx, error))
    return current


def execute(ctx: Context) -> Context:
    """Run the enter phase, falling through to the error phase on failure.

    Returns a context with an empty queue (unless terminated or failed), the
    entered interceptors on the stack, and possibly an error.
    """
    after_enter = run_enter_phase(ctx)
    if after_enter.error is not None:
        return run_error_phase(after_enter)
    return after_enter


def execute_leave(ctx: Context) -> Context:
    """Unwind the stack after the unit of work.

    1. If an error is present (e.g. the unit of work failed), run the error
       phase over the intact stack. This is the only point where such an
       error can be recovered.
    2. Run the leave phase over whatever remains.
    3. If the leave phase left an error, run the error phase once more. The
       stack is empty by then, so the error propagates to the caller.
    """
    to_leave = run_error_phase(ctx) if ctx.error is not None else ctx
    after_leave = run_leave_phase(to_leave)
    if after_leave.error is not None:
        return run_error_phase(after_leave)
    return after_leave


def execute_all(ctx: Context) -> Context:
    """Run enter and leave phases back to back, with no unit of work between.

    Mainly for tests and chains that do all their work in callbacks.
    """
    return execute_leave(execute(ctx))


__all__ = [
    "run_enter_phase",
    "run_leave_phase",
    "run_error_phase",
    "execute",
    "execute_leave",
    "execute_all",
]
