"""Built-in ``/help``, ``/cancel`` and ``/start``, registered as "Basic Commands"."""

from __future__ import annotations

from typing import Optional

from core.logger import TgrouteLogger
from tgroute.context import Context
from tgroute.handler import run_handler
from tgroute.registry import Command, HandlerRegistry
from tgroute.responses import MessageResponse

logger = TgrouteLogger.get_logger()

_GROUPS = "system.commands.groups"


def basic_group_name(ctx: Context) -> str:
    return ctx.t(f"{_GROUPS}.basic.name")


class BuiltinCommands:
    """Command handlers that read the registrations of *registry*."""

    def __init__(self, registry: HandlerRegistry) -> None:
        self._registry = registry

    def commands(self) -> list[Command]:
        return [
            Command("help", lambda ctx: ctx.t(f"{_GROUPS}.basic.commands.help.help"), self.help),
            Command("cancel", lambda ctx: ctx.t(f"{_GROUPS}.basic.commands.cancel.help"), self.cancel),
            Command("start", lambda ctx: ctx.t(f"{_GROUPS}.basic.commands.start.help"), self.start),
        ]

    def render_help(self, ctx: Context) -> str:
        """Every non-empty command group, one ``/command - help`` line per command."""
        sections: list[str] = []
        for group in self._registry.command_groups():
            if not group.commands:
                continue
            lines = [group.name(ctx)]
            for cmd in group.commands:
                help_text = cmd.help(ctx) if cmd.help is not None else ""
                lines.append(f"/{cmd.command} - {help_text}" if help_text else f"/{cmd.command}")
            sections.append("\n".join(lines))

        return ctx.t(f"{_GROUPS}.basic.commands.help.message", commands="\n\n".join(sections))

    async def help(self, ctx: Context) -> Optional[MessageResponse]:
        return ctx.new_message(self.render_help(ctx)).with_reply(ctx.update.message)

    async def cancel(self, ctx: Context) -> Optional[MessageResponse]:
        """Run every cancel handler whose predicate matches this update."""
        cancelled = 0
        for cancellable in self._registry.cancellable_commands():
            try:
                should_cancel = await cancellable.should_cancel(ctx)
            except Exception:
                logger.exception("Cancel predicate failed", extra={"update_id": ctx.update.update_id})
                continue
            if not should_cancel:
                continue
            cancelled += 1
            try:
                await run_handler(ctx, cancellable.handler)
            except Exception:
                logger.exception(
                    "Cancel handler failed",
                    extra={"update_id": ctx.update.update_id, "handler": getattr(cancellable.handler, "__qualname__", repr(cancellable.handler))},
                )

        if cancelled:
            return None
        return ctx.new_message(ctx.t(f"{_GROUPS}.basic.commands.cancel.already_cancelled_all")).with_reply(ctx.update.message)

    async def start(self, ctx: Context) -> Optional[MessageResponse]:
        """Run the registered start handlers, or show the help text if there are none."""
        handlers = self._registry.start_handlers()
        if not handlers:
            return await self.help(ctx)

        for handler in handlers:
            await run_handler(ctx, handler)
        return None
