"""Exchange rate routes. All require a signed-in user."""

import math

from fastapi import APIRouter, Depends, Query

from auth import require_user
from dependencies import get_exchange_rates
from services.exchange_rates import ExchangeRateGateway

router = APIRouter(dependencies=[Depends(require_user)])


def _parse_amount(raw: str) -> float:
    # float() also takes digit separators like "1_000"
    if "_" in raw:
        raise ValueError("Invalid amount")
    try:
        amount = float(raw)
    except ValueError:
        raise ValueError("Invalid amount") from None
    if not math.isfinite(amount):
        raise ValueError("Invalid amount")
    return amount


@router.get("/api/exchange-rates")
async def exchange_rates(gateway: ExchangeRateGateway = Depends(get_exchange_rates)) -> dict:
    """Latest rates for the popular currencies only, to keep the payload small."""
    snapshot = await gateway.require_rates()
    return {
        "base": snapshot.base,
        "rates": snapshot.popular(),
        "timestamp": int(snapshot.timestamp * 1000),
        "lastUpdated": int(snapshot.fetched_at * 1000),
    }


@router.get("/api/exchange-rates/convert")
async def convert(
    amount: str | None = Query(None),
    from_currency: str | None = Query(None, alias="from"),
    to_currency: str | None = Query(None, alias="to"),
    gateway: ExchangeRateGateway = Depends(get_exchange_rates),
) -> dict:
    if not amount or not from_currency or not to_currency:
        raise ValueError("Missing required parameters: amount, from, to")
    amount_num = _parse_amount(amount)

    # One snapshot for both numbers so they always agree
    snapshot = await gateway.require_rates()
    converted = snapshot.convert(amount_num, from_currency, to_currency)
    rate = snapshot.pair_rate(from_currency, to_currency)
    if not math.isfinite(converted):
        raise ValueError("Invalid amount")

    return {
        "from": from_currency,
        "to": to_currency,
        "amount": amount_num,
        "convertedAmount": round(converted, 2),
        "rate": rate,
        "timestamp": int(snapshot.timestamp * 1000),
    }


@router.get("/api/exchange-rates/status")
async def status(gateway: ExchangeRateGateway = Depends(get_exchange_rates)) -> dict:
    return gateway.limiter_status().to_dict()
