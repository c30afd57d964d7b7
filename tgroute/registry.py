"""Handler registry -- which handler serves which command, route or update type.

:class:`HandlerRegistry` only records registrations; :class:`~tgroute.dispatcher.Dispatcher`
extends it with the dispatch logic.  Registration is expected to finish
before the first update is dispatched; the registry is not safe to mutate
while updates are being served.

Usage::

    dispatcher.on_command("ping", lambda ctx: "Ping the bot", handle_ping)

    @dispatcher.callback_query("confirm")
    async def handle_confirm(ctx): ...
"""

from __future__ import annotations

import dataclasses
from typing import Awaitable, Callable, Optional

from core.logger import TgrouteLogger
from tgroute.callbacks import route_hash
from tgroute.context import Context
from tgroute.handler import Handler
from tgroute.types import UpdateType

logger = TgrouteLogger.get_logger()

HelpFunc = Callable[[Context], str]
Middleware = Callable[[Context], Awaitable[None]]
CancelPredicate = Callable[[Context], Awaitable[bool]]

# Update types whose every registered handler runs for each update.
BROADCAST_TYPES: tuple[UpdateType, ...] = (
    UpdateType.CHANNEL_POST,
    UpdateType.MY_CHAT_MEMBER,
    UpdateType.LEFT_CHAT_MEMBER,
    UpdateType.NEW_CHAT_MEMBERS,
    UpdateType.CHAT_MIGRATION_FROM,
)


@dataclasses.dataclass(slots=True)
class Command:
    """A slash-command: *command* is the name without the leading ``/``."""

    command: str
    help: Optional[HelpFunc] = None
    handler: Optional[Handler] = None


@dataclasses.dataclass(slots=True)
class CommandGroup:
    """A titled list of commands for ``/help``; list order is display order."""

    name: HelpFunc
    commands: list[Command] = dataclasses.field(default_factory=list)


@dataclasses.dataclass(frozen=True, slots=True)
class CancellableCommand:
    should_cancel: CancelPredicate
    handler: Handler


def _other_commands_group_name(ctx: Context) -> str:
    return ctx.t("system.commands.groups.other.name")


class HandlerRegistry:
    """Registration API shared by every dispatcher."""

    def __init__(self) -> None:
        self._middlewares: list[Middleware] = []
        self._commands: dict[str, Handler] = {}
        self._command_groups: list[CommandGroup] = []
        # Filled by on_command(); rendered after the explicit groups.
        self._default_group = CommandGroup(name=_other_commands_group_name)
        self._cancellable: list[CancellableCommand] = []
        self._start_handlers: list[Handler] = []
        self._callback_routes: dict[str, str] = {}
        self._callback_handlers: dict[str, Handler] = {}
        self._type_handlers: dict[UpdateType, list[Handler]] = {t: [] for t in BROADCAST_TYPES}

    # ── registration ─────────────────────────────────────────────────────

    def use(self, middleware: Middleware) -> None:
        """Run *middleware* for every update, before classification."""
        self._middlewares.append(middleware)

    def on_command(self, command: str, help: Optional[HelpFunc], handler: Handler) -> None:
        """Serve ``/command``; it is listed under "Other Commands" in ``/help``."""
        if command in self._commands:
            logger.warning("Command handler replaced", extra={"command": command})
        self._default_group.commands.append(Command(command=command, help=help))
        self._commands[command] = handler

    def on_command_group(self, name: HelpFunc, commands: list[Command]) -> None:
        """Register *commands* and list them under their own ``/help`` heading."""
        self._command_groups.append(CommandGroup(name=name, commands=list(commands)))
        for cmd in commands:
            if cmd.handler is None:
                continue
            if cmd.command in self._commands:
                logger.warning("Command handler replaced", extra={"command": cmd.command})
            self._commands[cmd.command] = cmd.handler

    def on_cancel_command(self, should_cancel: CancelPredicate, handler: Handler) -> None:
        """Run *handler* on ``/cancel`` whenever *should_cancel* returns true."""
        self._cancellable.append(CancellableCommand(should_cancel=should_cancel, handler=handler))

    def on_start_command(self, handler: Handler) -> None:
        """Run *handler* on ``/start`` (instead of the help text)."""
        self._start_handlers.append(handler)

    def on_channel_post(self, handler: Handler) -> None:
        self._type_handlers[UpdateType.CHANNEL_POST].append(handler)

    def on_my_chat_member(self, handler: Handler) -> None:
        self._type_handlers[UpdateType.MY_CHAT_MEMBER].append(handler)

    def on_left_chat_member(self, handler: Handler) -> None:
        self._type_handlers[UpdateType.LEFT_CHAT_MEMBER].append(handler)

    def on_new_chat_member(self, handler: Handler) -> None:
        self._type_handlers[UpdateType.NEW_CHAT_MEMBERS].append(handler)

    def on_chat_migration_from(self, handler: Handler) -> None:
        self._type_handlers[UpdateType.CHAT_MIGRATION_FROM].append(handler)

    def on_callback_query(self, route: str, handler: Handler) -> None:
        """Serve callback tokens issued for *route*."""
        hashed = route_hash(route)
        existing = self._callback_routes.get(hashed)
        if existing is not None and existing != route:
            raise ValueError(f"callback route {route!r} collides with {existing!r} (hash {hashed})")
        self._callback_routes[hashed] = route
        self._callback_handlers[hashed] = handler

    # ── decorators ───────────────────────────────────────────────────────

    def command(self, command: str, help: Optional[HelpFunc] = None) -> Callable[[Handler], Handler]:
        """Decorator form of :meth:`on_command`."""
        def decorator(func: Handler) -> Handler:
            self.on_command(command, help, func)
            return func
        return decorator

    def callback_query(self, route: str) -> Callable[[Handler], Handler]:
        """Decorator form of :meth:`on_callback_query`."""
        def decorator(func: Handler) -> Handler:
            self.on_callback_query(route, func)
            return func
        return decorator

    # ── lookup helpers ───────────────────────────────────────────────────

    def command_handler(self, command: str) -> Optional[Handler]:
        return self._commands.get(command)

    def callback_route(self, hashed: str) -> Optional[str]:
        return self._callback_routes.get(hashed)

    def callback_handler(self, hashed: str) -> Optional[Handler]:
        return self._callback_handlers.get(hashed)

    def handlers_for(self, update_type: UpdateType) -> list[Handler]:
        """Handlers of a broadcast update type, in registration order."""
        return list(self._type_handlers.get(update_type, ()))

    def command_groups(self) -> list[CommandGroup]:
        """Help groups in registration order, the implicit group last."""
        return [*self._command_groups, self._default_group]

    def cancellable_commands(self) -> list[CancellableCommand]:
        return list(self._cancellable)

    def start_handlers(self) -> list[Handler]:
        return list(self._start_handlers)

    def middlewares(self) -> list[Middleware]:
        return list(self._middlewares)
