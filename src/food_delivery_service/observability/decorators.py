"""OpenTelemetry tracing decorators."""

import functools
import inspect
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any, TypeVar

from opentelemetry import trace

from food_delivery_service.errors import ServiceError

F = TypeVar("F", bound=Callable[..., Any])

# Arguments copied onto the span when a traced call receives them
SPAN_ARGUMENTS = ("order_id", "food_item_id")


@contextmanager
def _span(
    tracer: trace.Tracer, name: str, func: Callable[..., Any], arguments: dict[str, Any]
) -> Iterator[trace.Span]:
    with tracer.start_as_current_span(name) as span:
        span.set_attribute("code.function", func.__qualname__)
        for argument in SPAN_ARGUMENTS:
            if isinstance(arguments.get(argument), str):
                span.set_attribute(argument, arguments[argument])

        try:
            yield span
        except Exception as e:
            span.set_attribute("success", False)
            span.set_attribute("error.type", type(e).__name__)
            if isinstance(e, ServiceError):
                span.set_attribute("error.kind", e.kind)
            span.record_exception(e)
            raise
        span.set_attribute("success", True)


def traced(span_name: str | None = None, tracer_name: str = "food-delivery-svc") -> Callable[[F], F]:
    """Run the decorated function, sync or async, inside its own span.

    Failures are recorded on the span and re-raised unchanged.

    Example:
        @traced("order.update_location")
        async def update_location(self, order_id: str, location: Location) -> TrackingInfo:
            ...
    """

    def decorator(func: F) -> F:
        name = span_name or func.__name__
        tracer = trace.get_tracer(tracer_name)
        signature = inspect.signature(func)

        def bound_arguments(args: tuple[Any, ...], kwargs: dict[str, Any]) -> dict[str, Any]:
            try:
                return dict(signature.bind_partial(*args, **kwargs).arguments)
            except TypeError:
                return kwargs

        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                with _span(tracer, name, func, bound_arguments(args, kwargs)):
                    return await func(*args, **kwargs)

            return async_wrapper  # type: ignore

        @functools.wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            with _span(tracer, name, func, bound_arguments(args, kwargs)):
                return func(*args, **kwargs)

        return sync_wrapper  # type: ignore

    return decorator
