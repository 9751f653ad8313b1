from __future__ import annotations

import inspect
import logging
import reprlib
from functools import wraps
from typing import Any, Callable, Iterable, MutableMapping, Optional, Set, TypeVar, cast

import numpy as np

F = TypeVar("F", bound=Callable[..., Any])

_repr = reprlib.Repr()
_repr.maxother = 120
_repr.maxlist = 8
_repr.maxtuple = 8
_repr.maxdict = 8


def summarize(value: Any) -> str:
    """Short, bounded rendering of ``value`` for DEBUG traces."""

    if isinstance(value, np.ndarray):
        if value.size == 0:
            return f"ndarray(shape={value.shape})"
        if value.size <= 6:
            return f"ndarray({_repr.repr(value.tolist())})"
        finite = value[np.isfinite(value)] if value.dtype.kind == "f" else value
        if finite.size == 0:
            return f"ndarray(shape={value.shape}, all non-finite)"
        return (
            f"ndarray(shape={value.shape}, min={float(finite.min()):.6g}, "
            f"max={float(finite.max()):.6g})"
        )
    return _repr.repr(value)


def debug_log_call(
    logger: logging.Logger, *, name: Optional[str] = None, log_result: bool = True
) -> Callable[[F], F]:
    """Decorator tracing entry, exit and exceptions of a callable at DEBUG."""

    def decorator(func: F) -> F:
        if getattr(func, "_debug_logging_wrapped", False):
            return func
        label = name or getattr(func, "__qualname__", func.__name__)

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any):
            if not logger.isEnabledFor(logging.DEBUG):
                return func(*args, **kwargs)
            rendered = ", ".join(
                [summarize(arg) for arg in args]
                + [f"{key}={summarize(val)}" for key, val in kwargs.items()]
            )
            logger.debug("-> %s(%s)", label, rendered)
            try:
                result = func(*args, **kwargs)
            except Exception:
                logger.debug("!! %s raised", label, exc_info=True)
                raise
            if log_result:
                logger.debug("<- %s = %s", label, summarize(result))
            else:
                logger.debug("<- %s", label)
            return result

        setattr(wrapper, "_debug_logging_wrapped", True)
        return cast(F, wrapper)

    return decorator


def _wrap_class(cls: type, logger: logging.Logger, skip: Set[str]) -> None:
    for attr, value in list(cls.__dict__.items()):
        if attr.startswith("__"):
            continue
        qualified = f"{cls.__name__}.{attr}"
        if attr in skip or qualified in skip:
            continue
        if isinstance(value, staticmethod):
            setattr(cls, attr, staticmethod(debug_log_call(logger, name=qualified)(value.__func__)))
        elif isinstance(value, classmethod):
            setattr(cls, attr, classmethod(debug_log_call(logger, name=qualified)(value.__func__)))
        elif inspect.isfunction(value) and value.__module__ == cls.__module__:
            setattr(cls, attr, debug_log_call(logger, name=qualified)(value))


def apply_debug_logging(
    namespace: MutableMapping[str, Any],
    *,
    logger: Optional[logging.Logger] = None,
    skip: Optional[Iterable[str]] = None,
    wrap_methods: bool = True,
) -> None:
    """Wrap the functions (and class methods) defined in a module namespace."""

    module = namespace.get("__name__")
    logger = logger or logging.getLogger(module if isinstance(module, str) else __name__)
    skip_set: Set[str] = set(skip or ())
    for name, value in list(namespace.items()):
        if name in skip_set:
            continue
        if inspect.isfunction(value) and value.__module__ == module:
            namespace[name] = debug_log_call(logger, name=name)(value)
        elif wrap_methods and inspect.isclass(value) and value.__module__ == module:
            _wrap_class(value, logger, skip_set)


__all__ = ["apply_debug_logging", "debug_log_call", "summarize"]
