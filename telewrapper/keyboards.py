"""Keyboard constructors returning python-telegram-bot markup objects."""

from typing import Optional, Sequence, Union

from telegram import (
    InlineKeyboardButton,
    InlineKeyboardMarkup,
    KeyboardButton,
    ReplyKeyboardMarkup,
    ReplyKeyboardRemove,
)


def k_button(text: str) -> KeyboardButton:
    return KeyboardButton(text=text)


def new_keyboard(
    buttons: Optional[Sequence[Sequence[Union[KeyboardButton, str]]]],
    one_time: bool = False,
    selective: bool = False,
    resize: bool = True,
) -> Union[ReplyKeyboardMarkup, ReplyKeyboardRemove]:
    """
    Build a reply keyboard.

    Passing ``None`` instead of rows returns a markup that removes the
    currently shown keyboard.
    """
    if buttons is None:
        return ReplyKeyboardRemove(selective=selective)

    return ReplyKeyboardMarkup(
        keyboard=[list(row) for row in buttons],
        resize_keyboard=resize,
        one_time_keyboard=one_time,
        selective=selective,
    )


def new_inline(buttons: Sequence[Sequence[InlineKeyboardButton]]) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup([list(row) for row in buttons])


def remove_keyboard(selective: bool = False) -> ReplyKeyboardRemove:
    return ReplyKeyboardRemove(selective=selective)
