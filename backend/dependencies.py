"""FastAPI dependencies handing out the collaborators built in create_app."""

from fastapi import Request

from services.exchange_rates import ExchangeRateGateway
from services.news import NewsGateway
from services.saved_articles import SavedArticleStore


def get_exchange_rates(request: Request) -> ExchangeRateGateway:
    return request.app.state.exchange_rates


def get_news(request: Request) -> NewsGateway:
    return request.app.state.news


def get_saved_articles(request: Request) -> SavedArticleStore:
    return request.app.state.saved_articles
