"""Name-based registry of email backends and chat agents.

Implementations register themselves with :func:`register_agent` when their
module is imported; :func:`load_builtin_agents` imports the bundled ones so
the web app can pick a backend from ``EMAIL_BACKEND`` without importing
transports it does not use by name.
"""

from __future__ import annotations

import importlib
from collections import defaultdict
from typing import Any, Callable, Dict, List, Type, TypeVar

from agents.interfaces import BaseChatAgent, BaseEmailAgent

TAgent = TypeVar("TAgent")

_REGISTRY: Dict[Type[Any], Dict[str, Type[Any]]] = defaultdict(dict)
_DEFAULTS: Dict[Type[Any], str] = {}

_BUILTIN_MODULES = (
    "agents.brevo_email_agent",
    "agents.smtp_email_agent",
    "agents.chat_agent",
)


def register_agent(
    interface: Type[TAgent], *names: str, is_default: bool = False
) -> Callable[[Type[TAgent]], Type[TAgent]]:
    """Class decorator filing the implementation under every name in *names*.

    The first name becomes the interface default when *is_default* is set or
    when nothing else has claimed it yet.
    """

    if not names:
        raise ValueError("register_agent needs at least one name")

    def decorator(cls: Type[TAgent]) -> Type[TAgent]:
        if not (isinstance(cls, type) and issubclass(cls, interface)):
            raise TypeError(f"{cls!r} does not implement {interface.__name__}")
        _REGISTRY[interface].update(dict.fromkeys(names, cls))
        if is_default:
            _DEFAULTS[interface] = names[0]
        else:
            _DEFAULTS.setdefault(interface, names[0])
        return cls

    return decorator


def load_builtin_agents() -> None:
    for module_name in _BUILTIN_MODULES:
        importlib.import_module(module_name)


def create_agent(interface: Type[TAgent], name: str = "", **kwargs: Any) -> TAgent:
    """Instantiate the implementation registered as *name* (or the default)."""

    implementations = _REGISTRY.get(interface) or {}
    label = interface.__name__
    if not implementations:
        raise KeyError(f"nothing is registered for {label}")

    key = name or _DEFAULTS.get(interface)
    if not key:
        raise KeyError(f"{label} has no default implementation")
    try:
        cls = implementations[key]
    except KeyError:
        choices = ", ".join(sorted(implementations))
        raise KeyError(f"unknown {label} '{key}' (choose from: {choices})") from None
    return cls(**kwargs)


def available_agents(interface: Type[Any]) -> List[str]:
    return sorted(_REGISTRY.get(interface, ()))


__all__ = [
    "BaseChatAgent",
    "BaseEmailAgent",
    "available_agents",
    "create_agent",
    "load_builtin_agents",
    "register_agent",
]
