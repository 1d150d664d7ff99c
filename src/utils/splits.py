# src/utils/splits.py
# -----------------------------------------------------------------------------
# ДЕЛЕНИЕ РАСХОДА МЕЖДУ УЧАСТНИКАМИ (чистые функции)
# -----------------------------------------------------------------------------
# Политика:
#   • Деньги: Decimal, квантуются до копеек (ROUND_HALF_UP). Никакого float
#     и никаких eps при сравнении сумм: суммы долей совпадают с total точно.
#   • Остаток копеек при делении раздаётся по одной копейке первым долям
#     (для процентов: долям с наибольшим дробным остатком).
#   • Проценты: не деньги: сумма процентов сверяется с 100 с допуском 0.01.
#   • Ошибки НЕ бросаются: функции возвращают SplitOutcome (shares | error),
#     чтобы пакетный импорт мог продолжать после неудачной записи.
#   • Способ 'equal': плательщик ВСЕГДА участвует в делении. Для n участников
#     (кроме плательщика) сумма делится на n + 1 долю, первая доля -
#     плательщика; она «остаётся у него» и не хранится строкой ExpenseSplit.
#   • Способы 'percentage' / 'exact': доли перечисляются явно; плательщик может
#     быть в списке (его доля остаётся у него) или отсутствовать (доля = 0).
# -----------------------------------------------------------------------------

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_DOWN, ROUND_HALF_UP
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")
PERCENT_EPS = Decimal("0.01")


# =========================
# ВСПОМОГАТЕЛЬНОЕ
# =========================

def _D(x) -> Decimal:
    if isinstance(x, Decimal):
        return x
    return Decimal(str(x))


def to_money(x) -> Decimal:
    """Привести значение к деньгам: Decimal с двумя знаками."""
    return _D(x).quantize(CENT, rounding=ROUND_HALF_UP)


def _floor_cents(d: Decimal) -> Decimal:
    return d.quantize(CENT, rounding=ROUND_DOWN)


# =========================
# ТИПЫ РЕЗУЛЬТАТА
# =========================

class SplitErrorCode(str, Enum):
    INVALID_AMOUNT = "invalid_amount"
    NO_PARTICIPANTS = "no_participants"
    SPLIT_SUM_MISMATCH = "split_sum_mismatch"
    PERCENTAGE_SUM_MISMATCH = "percentage_sum_mismatch"


@dataclass(frozen=True)
class Share:
    user_id: int
    amount: Decimal
    percentage: Optional[Decimal] = None


@dataclass(frozen=True)
class SplitError:
    code: SplitErrorCode
    message: str
    expected: Optional[Decimal] = None
    actual: Optional[Decimal] = None

    def as_dict(self) -> Dict[str, Optional[str]]:
        return {
            "code": self.code.value,
            "message": self.message,
            "expected": None if self.expected is None else str(self.expected),
            "actual": None if self.actual is None else str(self.actual),
        }


@dataclass(frozen=True)
class SplitOutcome:
    shares: Tuple[Share, ...] = field(default_factory=tuple)
    error: Optional[SplitError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, shares: Iterable[Share]) -> "SplitOutcome":
        return cls(shares=tuple(shares))

    @classmethod
    def failure(
        cls,
        code: SplitErrorCode,
        message: str,
        *,
        expected: Optional[Decimal] = None,
        actual: Optional[Decimal] = None,
    ) -> "SplitOutcome":
        return cls(error=SplitError(code=code, message=message, expected=expected, actual=actual))


@dataclass(frozen=True)
class ParticipantInput:
    """Сырой ввод участника: для 'equal' нужен только user_id."""
    user_id: int
    amount: Optional[Decimal] = None
    percentage: Optional[Decimal] = None


def _invalid_total(total: Decimal) -> Optional[SplitOutcome]:
    if total <= ZERO:
        return SplitOutcome.failure(
            SplitErrorCode.INVALID_AMOUNT,
            "Amount must be greater than zero",
            actual=total,
        )
    return None


def _no_participants() -> SplitOutcome:
    return SplitOutcome.failure(
        SplitErrorCode.NO_PARTICIPANTS,
        "Select at least one participant to split with",
    )


# =========================
# РАВНЫЕ ДОЛИ
# =========================

def split_evenly(total_amount, count: int) -> List[Decimal]:
    """
    Делит total на count долей по копейкам. Первые (остаток) долей получают
    на копейку больше, так что sum(доли) == total точно.
    """
    if count <= 0:
        return []
    total = to_money(total_amount)
    cents = int(total / CENT)
    base, remainder = divmod(cents, count)
    return [(Decimal(base + (1 if i < remainder else 0)) * CENT) for i in range(count)]


def compute_equal_split(total_amount, participants: Sequence[int]) -> SplitOutcome:
    """
    Равное деление между participants (порядок важен: лишние копейки
    достаются первым). Доли отличаются не более чем на копейку.
    """
    total = to_money(total_amount)
    bad = _invalid_total(total)
    if bad is not None:
        return bad
    if not participants:
        return _no_participants()

    amounts = split_evenly(total, len(participants))
    return SplitOutcome.success(Share(user_id=uid, amount=amt) for uid, amt in zip(participants, amounts))


# =========================
# ПРОЦЕНТЫ
# =========================

def compute_percentage_split(total_amount, percentages: Mapping[int, object]) -> SplitOutcome:
    """
    amount = total * pct / 100 для каждого участника.
    Сумма процентов должна быть 100 (допуск 0.01). Копейки распределяются
    методом наибольшего остатка, так что sum(amount) == total точно.
    """
    total = to_money(total_amount)
    bad = _invalid_total(total)
    if bad is not None:
        return bad
    if not percentages:
        return _no_participants()

    pcts = [(uid, _D(p)) for uid, p in percentages.items()]
    pct_sum = sum((p for _, p in pcts), Decimal("0"))

    if any(p < 0 or p > HUNDRED for _, p in pcts):
        return SplitOutcome.failure(
            SplitErrorCode.PERCENTAGE_SUM_MISMATCH,
            "Each percentage must be between 0 and 100",
            expected=HUNDRED,
            actual=pct_sum,
        )
    if (pct_sum - HUNDRED).copy_abs() > PERCENT_EPS:
        return SplitOutcome.failure(
            SplitErrorCode.PERCENTAGE_SUM_MISMATCH,
            f"Percentages must add up to 100 (got {pct_sum})",
            expected=HUNDRED,
            actual=pct_sum,
        )

    # делим пропорционально фактической сумме процентов: при 99.995 / 100.005
    # результат всё равно сходится к total без отрицательного остатка
    raw = [total * p / pct_sum for _, p in pcts]
    floored = [_floor_cents(r) for r in raw]
    leftover = int((total - sum(floored, ZERO)) / CENT)

    order = sorted(range(len(raw)), key=lambda i: (-(raw[i] - floored[i]), i))
    for i in order[:leftover]:
        floored[i] += CENT

    return SplitOutcome.success(
        Share(user_id=uid, amount=amt, percentage=p)
        for (uid, p), amt in zip(pcts, floored)
    )


# =========================
# ТОЧНЫЕ СУММЫ
# =========================

def compute_exact_split(total_amount, amounts: Mapping[int, object]) -> SplitOutcome:
    """Суммы как есть (до копеек); их сумма обязана совпасть с total."""
    total = to_money(total_amount)
    bad = _invalid_total(total)
    if bad is not None:
        return bad
    if not amounts:
        return _no_participants()

    shares = [Share(user_id=uid, amount=to_money(a)) for uid, a in amounts.items()]
    if any(s.amount < ZERO for s in shares):
        return SplitOutcome.failure(
            SplitErrorCode.INVALID_AMOUNT,
            "Split amounts must not be negative",
        )

    actual = sum((s.amount for s in shares), ZERO)
    if actual != total:
        return SplitOutcome.failure(
            SplitErrorCode.SPLIT_SUM_MISMATCH,
            f"Split amounts must add up to {total} (got {actual})",
            expected=total,
            actual=actual,
        )
    return SplitOutcome.success(shares)


# =========================
# ПРОВЕРКА ГОТОВОГО НАБОРА ДОЛЕЙ
# =========================

def validate(total_amount, shares: Sequence[Share], split_type: str) -> SplitOutcome:
    """
    Повторно проверяет инварианты уже собранных долей (доля плательщика
    включена). Возвращает те же доли или первую найденную ошибку.
    """
    total = to_money(total_amount)
    bad = _invalid_total(total)
    if bad is not None:
        return bad
    if not shares:
        return _no_participants()

    amounts = [to_money(s.amount) for s in shares]
    if any(a < ZERO for a in amounts):
        return SplitOutcome.failure(SplitErrorCode.INVALID_AMOUNT, "Split amounts must not be negative")

    actual = sum(amounts, ZERO)
    if actual != total:
        return SplitOutcome.failure(
            SplitErrorCode.SPLIT_SUM_MISMATCH,
            f"Split amounts must add up to {total} (got {actual})",
            expected=total,
            actual=actual,
        )

    if split_type == "equal":
        expected_share = to_money(total / len(amounts))
        if max(amounts) - min(amounts) > CENT:
            worst = max(amounts, key=lambda a: (a - expected_share).copy_abs())
            return SplitOutcome.failure(
                SplitErrorCode.SPLIT_SUM_MISMATCH,
                "Equal split shares must not differ by more than one cent",
                expected=expected_share,
                actual=worst,
            )

    elif split_type == "percentage":
        pcts = [_D(s.percentage) if s.percentage is not None else Decimal("0") for s in shares]
        pct_sum = sum(pcts, Decimal("0"))
        if (pct_sum - HUNDRED).copy_abs() > PERCENT_EPS:
            return SplitOutcome.failure(
                SplitErrorCode.PERCENTAGE_SUM_MISMATCH,
                f"Percentages must add up to 100 (got {pct_sum})",
                expected=HUNDRED,
                actual=pct_sum,
            )
        for amt, pct in zip(amounts, pcts):
            derived = total * pct / pct_sum
            if (amt - derived).copy_abs() >= CENT:
                return SplitOutcome.failure(
                    SplitErrorCode.SPLIT_SUM_MISMATCH,
                    "Split amount does not match its percentage",
                    expected=to_money(derived),
                    actual=amt,
                )

    return SplitOutcome.success(
        Share(user_id=s.user_id, amount=a, percentage=s.percentage) for s, a in zip(shares, amounts)
    )


# =========================
# ЕДИНАЯ ТОЧКА ДЛЯ HTTP / ИМПОРТА
# =========================

def _aggregate(participants: Sequence[ParticipantInput], attr: str) -> Dict[int, Decimal]:
    # дубли user_id суммируются, порядок: по первому появлению
    out: Dict[int, Decimal] = {}
    for p in participants:
        value = getattr(p, attr)
        out[p.user_id] = out.get(p.user_id, Decimal("0")) + (_D(value) if value is not None else Decimal("0"))
    return out


def build_shares(
    total_amount,
    payer_id: int,
    split_type: str,
    participants: Sequence[ParticipantInput],
) -> SplitOutcome:
    """
    Собирает доли ВСЕХ, кто делит расход (включая плательщика, если он делит).
    Требуется хотя бы один участник кроме плательщика.
    """
    others = []
    for p in participants:
        if p.user_id != payer_id and p.user_id not in others:
            others.append(p.user_id)

    total = to_money(total_amount)
    bad = _invalid_total(total)
    if bad is not None:
        return bad
    if not others:
        return _no_participants()

    if split_type == "equal":
        return compute_equal_split(total, [payer_id] + others)
    if split_type == "percentage":
        return compute_percentage_split(total, _aggregate(participants, "percentage"))
    if split_type == "exact":
        return compute_exact_split(total, _aggregate(participants, "amount"))
    raise ValueError(f"Unknown split_type: {split_type!r}")


def payer_retained_share(shares: Sequence[Share], payer_id: int) -> Decimal:
    return sum((s.amount for s in shares if s.user_id == payer_id), ZERO)


def owed_shares(shares: Sequence[Share], payer_id: int) -> List[Share]:
    """Доли, которые становятся строками ExpenseSplit (всё, кроме плательщика)."""
    return [s for s in shares if s.user_id != payer_id]
