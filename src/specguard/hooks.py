"""Hook registration and execution.

A :class:`Configuration` holds :class:`~specguard.models.Settings` plus the
callables registered for each hook name. Every
:class:`~specguard.definition.document.Document` gets a :meth:`child
<Configuration.child>` of the global configuration: hooks registered on the
child only apply to that document, while hooks registered later on the
parent still reach it. A document freezes its child once it is built.

Hook names and their arguments:

* ``after_request_validation`` -- ``(validated_request, document)``
* ``after_response_validation`` -- ``(validated_response, request, document)`` where *request* is the
  :class:`~specguard.validation.exchange.RawRequest`
* ``after_request_parameter_property_validation`` --
  ``(data, property_name, property_schema, parent_schema)``
* ``after_request_body_property_validation`` -- same as above
* ``after_response_body_property_validation`` -- same as above

Property hooks run after each object property has been validated and may
mutate *data* in place.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Any, Optional

from specguard.config import resolve_settings
from specguard.exceptions import ConfigError
from specguard.models import Settings

AFTER_REQUEST_VALIDATION = "after_request_validation"
AFTER_RESPONSE_VALIDATION = "after_response_validation"
AFTER_REQUEST_PARAMETER_PROPERTY_VALIDATION = "after_request_parameter_property_validation"
AFTER_REQUEST_BODY_PROPERTY_VALIDATION = "after_request_body_property_validation"
AFTER_RESPONSE_BODY_PROPERTY_VALIDATION = "after_response_body_property_validation"

HOOK_NAMES = (
    AFTER_REQUEST_VALIDATION,
    AFTER_RESPONSE_VALIDATION,
    AFTER_REQUEST_PARAMETER_PROPERTY_VALIDATION,
    AFTER_REQUEST_BODY_PROPERTY_VALIDATION,
    AFTER_RESPONSE_BODY_PROPERTY_VALIDATION,
)

Hook = Callable[..., Any]


class Configuration:
    """Settings plus hook registrations.

    Args:
        settings: Settings for this configuration; a child inherits its
            parent's settings unless given its own. A root configuration
            without settings reads them from ``specguard.json`` and
            ``SPECGUARD_*`` variables on every access.
        parent: Configuration whose hooks are chained after this one's.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        parent: Optional["Configuration"] = None,
    ) -> None:
        if settings is None and parent is not None:
            settings = parent.settings
        self._settings = settings
        self._parent = parent
        self._hooks: dict[str, list[Hook]] = {name: [] for name in HOOK_NAMES}
        self._frozen = False
        self._lock = threading.Lock()

    @property
    def settings(self) -> Settings:
        if self._settings is None:
            return resolve_settings()
        return self._settings

    @settings.setter
    def settings(self, value: Settings) -> None:
        self._check_mutable()
        self._settings = value

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        """Reject any further changes to this configuration."""
        self._frozen = True

    def _check_mutable(self) -> None:
        if self._frozen:
            raise ConfigError("Configuration is frozen; register hooks before loading the document")

    def register_hook(self, name: str, func: Hook) -> Hook:
        """Register *func* for hook *name* and return it.

        Raises:
            ValueError: If *name* is not a known hook.
            ConfigError: If the configuration is frozen.
        """
        if name not in self._hooks:
            raise ValueError(f"Unknown hook {name!r}. Known hooks: {', '.join(HOOK_NAMES)}")
        self._check_mutable()
        with self._lock:
            if func not in self._hooks[name]:
                self._hooks[name].append(func)
        return func

    def unregister_hook(self, name: str, func: Hook) -> None:
        self._check_mutable()
        with self._lock:
            if func in self._hooks.get(name, []):
                self._hooks[name].remove(func)

    def hook(self, name: str) -> Callable[[Hook], Hook]:
        """Decorator form of :meth:`register_hook`::

            @configuration.hook("after_request_validation")
            def log_request(validated, document): ...
        """

        def decorator(func: Hook) -> Hook:
            return self.register_hook(name, func)

        return decorator

    def hooks(self, name: str) -> tuple[Hook, ...]:
        """Hooks for *name*: this configuration's first, then the parent chain."""
        own = tuple(self._hooks.get(name, ()))
        if self._parent is None:
            return own
        return own + self._parent.hooks(name)

    def child(self, settings: Optional[Settings] = None) -> "Configuration":
        return Configuration(settings=settings, parent=self)


class HookRunner:
    """Invokes the hooks of one configuration in registration order.

    The runner reads the configuration's hooks on every call, so hooks
    registered on a parent configuration after the runner was created are
    still run.
    """

    def __init__(self, configuration: Configuration) -> None:
        self._configuration = configuration

    def run(self, name: str, *args: Any) -> None:
        for hook in self._configuration.hooks(name):
            hook(*args)

    def property_hook(self, name: str) -> Callable[[dict, str, Any, Any], None]:
        """Return a callback suitable for :class:`~specguard.schema.compiler.Schema`."""

        def run_property_hooks(data: dict, property_name: str, property_schema: Any, parent: Any) -> None:
            for hook in self._configuration.hooks(name):
                hook(data, property_name, property_schema, parent)

        return run_property_hooks


configuration = Configuration()
"""The global configuration every loaded document derives from."""
