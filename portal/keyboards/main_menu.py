"""
Main menu keyboards.
"""
from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup
from aiogram.utils.keyboard import InlineKeyboardBuilder

from portal.keyboards.callbacks import MainMenuCb


def main_menu() -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    builder.row(
        InlineKeyboardButton(text="🏢 Register Business", callback_data=MainMenuCb(action="register").pack()),
    )
    builder.row(
        InlineKeyboardButton(text="🔑 Sign In",           callback_data=MainMenuCb(action="signin").pack()),
    )
    return builder.as_markup()


def back_to_main() -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    builder.row(InlineKeyboardButton(text="🔙 Main menu", callback_data=MainMenuCb(action="main").pack()))
    return builder.as_markup()
