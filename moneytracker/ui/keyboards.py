# moneytracker/ui/keyboards.py
from __future__ import annotations
from typing import List, Tuple
from aiogram.types import InlineKeyboardMarkup, InlineKeyboardButton


def confirm_keyboard(pairs: List[Tuple[str, int]]) -> InlineKeyboardMarkup:
    """
    pairs: [(label, tx_id), ...]
    one "confirm" button per pending transaction, two per row
    """
    buttons = []
    row = []
    for label, tx_id in pairs:
        row.append(InlineKeyboardButton(text=f"✅ {label}", callback_data=f"confirm:{tx_id}"))
        if len(row) == 2:
            buttons.append(row); row = []
    if row:
        buttons.append(row)
    return InlineKeyboardMarkup(inline_keyboard=buttons)


def rule_keyboard(rule_id: int, status: str) -> InlineKeyboardMarkup:
    """Pause/resume and skip for a single recurring rule."""
    toggle = (
        InlineKeyboardButton(text="⏸ Pause", callback_data=f"rec:pause:{rule_id}")
        if status == "active"
        else InlineKeyboardButton(text="▶️ Resume", callback_data=f"rec:resume:{rule_id}")
    )
    return InlineKeyboardMarkup(inline_keyboard=[[
        toggle,
        InlineKeyboardButton(text="⏭ Skip next", callback_data=f"rec:skip:{rule_id}"),
    ]])
