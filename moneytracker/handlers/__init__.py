# moneytracker/handlers/__init__.py
from __future__ import annotations

from typing import Iterable
from aiogram import Dispatcher, Router
import importlib
import logging

LOADED_HANDLERS: list[str] = []


def _module_names() -> Iterable[str]:
    return (
        "start",
        "recurring",
        "goals",
    )


def setup(dp: Dispatcher) -> None:
    for name in _module_names():
        mod = importlib.import_module(f"moneytracker.handlers.{name}")
        router: Router = getattr(mod, "router")
        dp.include_router(router)
        LOADED_HANDLERS.append(name)
        logging.info('handler_loaded name="%s"', name)
