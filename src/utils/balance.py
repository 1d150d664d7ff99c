# src/utils/balance.py
# -----------------------------------------------------------------------------
# УТИЛИТЫ РАСЧЁТА БАЛАНСОВ
# -----------------------------------------------------------------------------
# Политика:
#   • Внутренние расчёты: Decimal (копейки), без float.
#   • Семантика net:
#       net > 0: пользователю ДОЛЖНЫ; net < 0: он ДОЛЖЕН.
#   • В расчёт идут только расходы type='split' и только НЕпогашенные доли.
#     'solo': контрагента нет; 'settlement': уже состоявшийся платёж.
#   • Контрагент - непрозрачный id, неизвестные пользователи допустимы,
#     имя подставляет вызывающий код.
#   • Один линейный проход по расходам; кэшей нет: вызывающий сам
#     отвечает за свежесть списка.
# -----------------------------------------------------------------------------

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Tuple

ZERO = Decimal("0.00")


def _D(x) -> Decimal:
    if isinstance(x, Decimal):
        return x
    return Decimal(str(x))


@dataclass
class CounterpartyBalance:
    you_owe: Decimal = ZERO
    they_owe: Decimal = ZERO
    net_amount: Decimal = ZERO

    def add_they_owe(self, amount: Decimal) -> None:
        self.they_owe += amount
        self.net_amount = self.they_owe - self.you_owe

    def add_you_owe(self, amount: Decimal) -> None:
        self.you_owe += amount
        self.net_amount = self.they_owe - self.you_owe


@dataclass
class UserBalance:
    total_owed: Decimal = ZERO
    total_owe: Decimal = ZERO
    counterparties: Dict[int, CounterpartyBalance] = field(default_factory=dict)

    @property
    def net_balance(self) -> Decimal:
        return self.total_owed - self.total_owe


def _open_splits(expense) -> Iterable:
    for split in getattr(expense, "splits", None) or []:
        if not getattr(split, "settled", False):
            yield split


def aggregate_user_balance(expenses: Iterable, user_id: int) -> UserBalance:
    """
    По снимку расходов пользователя (он плательщик или участник) считает:
      total_owed : сколько должны ему (его расходы, чужие непогашенные доли);
      total_owe  : сколько должен он (чужие расходы, его непогашенная доля);
      counterparties[id] = {you_owe, they_owe, net_amount}.
    """
    result = UserBalance()

    for expense in expenses:
        if getattr(expense, "type", None) != "split":
            continue
        payer = getattr(expense, "payer_id", None)
        if payer is None:
            continue

        for split in _open_splits(expense):
            uid = getattr(split, "user_id", None)
            if uid is None or uid == payer:
                continue
            amount = _D(getattr(split, "amount", 0))

            if payer == user_id:
                # участник uid должен нам
                result.counterparties.setdefault(uid, CounterpartyBalance()).add_they_owe(amount)
                result.total_owed += amount
            elif uid == user_id:
                # мы должны плательщику
                result.counterparties.setdefault(payer, CounterpartyBalance()).add_you_owe(amount)
                result.total_owe += amount

    return result


def sort_counterparties(
    counterparties: Dict[int, CounterpartyBalance],
) -> List[Tuple[int, CounterpartyBalance]]:
    """Для выдачи: по убыванию |net|, при равенстве: по id."""
    return sorted(
        counterparties.items(),
        key=lambda item: (-item[1].net_amount.copy_abs(), item[0]),
    )


def pair_open_splits(expenses: Iterable, user_a: int, user_b: int) -> List[Tuple[object, object]]:
    """
    Все непогашенные доли между двумя пользователями (в обе стороны):
    [(expense, split), ...]: для settle-up.
    """
    out: List[Tuple[object, object]] = []
    for expense in expenses:
        if getattr(expense, "type", None) != "split":
            continue
        payer = getattr(expense, "payer_id", None)
        if payer not in (user_a, user_b):
            continue
        other = user_b if payer == user_a else user_a
        for split in _open_splits(expense):
            if getattr(split, "user_id", None) == other:
                out.append((expense, split))
    return out
