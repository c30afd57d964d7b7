"""Exceptions raised by, and understood by, the dispatch layer.

Handlers raise :class:`MessageError` to answer the user with a message and
:class:`ExceptionError` to report an internal failure; the handler boundary in
:mod:`tgroute.handler` turns both into replies or log records.  The callback
payload errors are raised to handler code by
:meth:`tgroute.context.Context.bind_callback_payload`.
"""

from __future__ import annotations

from sdk.models import InlineKeyboardMarkup, Message

PARSE_MODE_HTML = "HTML"


class _ReplyOptions:
    """Fluent reply options shared by :class:`MessageError` and :class:`ExceptionError`."""

    reply_to_message_id: int | None
    edit_message: Message | None
    parse_mode: str | None
    reply_markup: InlineKeyboardMarkup | None
    delete_later_for_user_id: int
    delete_later_chat_id: int

    def _init_reply_options(self) -> None:
        self.reply_to_message_id = None
        self.edit_message = None
        self.parse_mode = None
        self.reply_markup = None
        self.delete_later_for_user_id = 0
        self.delete_later_chat_id = 0

    def with_reply(self, message: Message | None):
        """Reply to *message* instead of posting a standalone message."""
        if message is not None:
            self.reply_to_message_id = message.message_id
        return self

    def with_edit(self, message: Message | None):
        """Edit *message* in place instead of sending a new one."""
        if message is not None:
            self.edit_message = message
        return self

    def with_parse_mode_html(self):
        self.parse_mode = PARSE_MODE_HTML
        return self

    def with_reply_markup(self, reply_markup: InlineKeyboardMarkup):
        self.reply_markup = reply_markup
        return self

    def with_delete_later(self, user_id: int, chat_id: int):
        """Queue the resulting message for deletion in *user_id*'s next cleanup."""
        self.delete_later_for_user_id = user_id
        self.delete_later_chat_id = chat_id
        return self


class MessageError(_ReplyOptions, Exception):
    """A failure whose text is meant for the user.

    Usage::

        raise MessageError("Please reply to a message").with_reply(ctx.update.message)
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message
        self._init_reply_options()


class ExceptionError(_ReplyOptions, Exception):
    """An internal failure; logged with its cause, optionally answered with *message*.

    Usage::

        try:
            ...
        except requests.RequestException as exc:
            raise ExceptionError(exc).with_message("Service unavailable") from exc
    """

    def __init__(self, err: BaseException) -> None:
        super().__init__(str(err))
        self.err = err
        self.message: str | None = None
        self._init_reply_options()

    def with_message(self, message: str) -> "ExceptionError":
        self.message = message
        return self


class CallbackDataStoreError(Exception):
    """The payload for an inline button could not be persisted.

    :attr:`token` is still usable as callback data; pressing the button will
    simply resolve as an invalid action.
    """

    def __init__(self, token: str, route: str) -> None:
        super().__init__(f"failed to store callback query data for route {route!r}")
        self.token = token
        self.route = route


class CallbackPayloadError(Exception):
    """Base class for failures binding a callback payload in a handler."""


class CallbackPayloadMissingError(CallbackPayloadError):
    """No payload is bound: the context is not a resolved callback dispatch."""


class CallbackPayloadMismatchError(CallbackPayloadError):
    """The bound payload does not deserialize into the requested type."""
