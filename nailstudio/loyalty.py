"""Loyalty card arithmetic: stamps, hearts and mimos.

Every qualifying event earns one stamp. Every ``STAMPS_PER_HEART`` stamps
make a heart, every ``HEARTS_PER_MIMO`` hearts unlock a mimo (a redeemable
treat). The card shows ``CARD_SIZE`` slots and restarts at 1 after a full
card while the raw stamp counter keeps climbing.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass

from .errors import NoMimosAvailable
from .models import Client
from .notices import NoticeLog

STAMPS_PER_HEART = 3
HEARTS_PER_MIMO = 1
CARD_SIZE = 12


def stamps_on_current_card(stamps_earned: int) -> int:
    if stamps_earned <= 0:
        return 0
    return (stamps_earned - 1) % CARD_SIZE + 1


def hearts_earned(stamps_earned: int) -> int:
    return max(stamps_earned, 0) // STAMPS_PER_HEART


def mimos_earned_total(stamps_earned: int) -> int:
    return hearts_earned(stamps_earned) // HEARTS_PER_MIMO


def mimos_available(stamps_earned: int, mimos_redeemed: int) -> int:
    return mimos_earned_total(stamps_earned) - mimos_redeemed


@dataclass(frozen=True)
class LoyaltySummary:
    stamps_earned: int
    mimos_redeemed: int
    stamps_on_current_card: int
    hearts_earned: int
    mimos_earned_total: int
    mimos_available: int
    card_size: int = CARD_SIZE

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


def summarize(stamps_earned: int, mimos_redeemed: int = 0) -> LoyaltySummary:
    stamps_earned = stamps_earned or 0
    mimos_redeemed = mimos_redeemed or 0
    return LoyaltySummary(
        stamps_earned=stamps_earned,
        mimos_redeemed=mimos_redeemed,
        stamps_on_current_card=stamps_on_current_card(stamps_earned),
        hearts_earned=hearts_earned(stamps_earned),
        mimos_earned_total=mimos_earned_total(stamps_earned),
        mimos_available=mimos_available(stamps_earned, mimos_redeemed),
    )


def summarize_client(client: Client) -> LoyaltySummary:
    return summarize(client.stamps_earned, client.mimos_redeemed)


def award_stamp(client: Client, notices: NoticeLog, reason: str = "") -> int:
    """Add one stamp to the client's card and return the new total."""
    new_total = (client.stamps_earned or 0) + 1
    client.stamps_earned = new_total

    if new_total % CARD_SIZE == 0:
        notices.success(
            "Cartão Completo!",
            f"Parabéns {client.name}! Você completou um cartão e ganhou novas recompensas!",
        )
    else:
        suffix = f" {reason}" if reason else ""
        notices.success("Selo Adicionado!", f"+1 selo de fidelidade para {client.name}.{suffix}")
    return new_total


def remove_stamp(client: Client, notices: NoticeLog) -> int:
    current = client.stamps_earned or 0
    if current > 0:
        client.stamps_earned = current - 1
        notices.info(
            "Selo Removido",
            f"1 selo foi removido de {client.name}. Total: {client.stamps_earned}.",
        )
    return client.stamps_earned or 0


def redeem_mimo(client: Client, notices: NoticeLog) -> LoyaltySummary:
    summary = summarize_client(client)
    if summary.mimos_available <= 0:
        raise NoMimosAvailable("Não há mimos disponíveis para resgate.")

    client.mimos_redeemed = summary.mimos_redeemed + 1
    notices.success("Mimo Resgatado!", f"{client.name} resgatou um mimo.")
    return summarize_client(client)


def reset_card(client: Client, notices: NoticeLog) -> LoyaltySummary:
    client.stamps_earned = 0
    client.mimos_redeemed = 0
    notices.info(
        "Selos e Mimos Resetados!",
        f"Os selos e mimos resgatados de {client.name} foram zerados.",
    )
    return summarize_client(client)
