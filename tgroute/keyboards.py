"""Inline keyboard edits keyed by a button's callback data."""

from sdk.models import InlineKeyboardButton, InlineKeyboardMarkup


def remove_inline_keyboard_button(markup: InlineKeyboardMarkup, callback_data: str) -> InlineKeyboardMarkup:
    """Return a copy of *markup* without the first button per row whose data matches.

    Rows left empty are dropped.
    """
    rows: list[list[InlineKeyboardButton]] = []
    for row in markup.inline_keyboard:
        new_row = list(row)
        for i, button in enumerate(new_row):
            if button.callback_data is not None and button.callback_data == callback_data:
                del new_row[i]
                break
        if new_row:
            rows.append(new_row)
    return InlineKeyboardMarkup(inline_keyboard=rows)


def replace_inline_keyboard_button(
    markup: InlineKeyboardMarkup,
    callback_data: str,
    replacement: InlineKeyboardButton,
) -> InlineKeyboardMarkup:
    """Return a copy of *markup* with the first matching button per row replaced."""
    rows: list[list[InlineKeyboardButton]] = []
    for row in markup.inline_keyboard:
        new_row = list(row)
        for i, button in enumerate(new_row):
            if button.callback_data is not None and button.callback_data == callback_data:
                new_row[i] = replacement
                break
        rows.append(new_row)
    return InlineKeyboardMarkup(inline_keyboard=rows)
