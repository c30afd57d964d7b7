"""Namespaced storage keys shared by every storage backend.

Keys are ``domain/subject/qualifier…`` strings; each constant documents the
positional parameters its :meth:`Key.format` expects.
"""


class Key(str):
    """A key template whose placeholders are filled positionally."""

    def format(self, *params: object) -> str:  # type: ignore[override]
        return str.format(self, *params)


# ── Session ──────────────────────────────────────────────────────────────────

# List. params: actor id
SESSION_DELETE_LATER_MESSAGES_FOR_ACTOR = Key("session/delete_later_messages_for_actor/{}")

# ── Callback queries ─────────────────────────────────────────────────────────

# String. params: handler route, action data hash
CALLBACK_QUERY_DATA = Key("callback_query/button_data/{}/{}")

# ── Rate limits ──────────────────────────────────────────────────────────────

# String counter. params: command, platform, chat id
COMMAND_RATE_LIMIT = Key("rate_limit/{}/{}/{}")
