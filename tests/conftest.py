"""Shared test fixtures."""
import os

# Settings require DATABASE_URL at import time
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from sqlmodel import SQLModel, Session, create_engine

from lokalny.models import models  # noqa: F401
from lokalny.models.models import Card
from lokalny.services import card_service, user_service


@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite database with the full schema, so several sessions can share it."""
    db_engine = create_engine(
        f"sqlite:///{tmp_path / 'lokalny.db'}",
        connect_args={"check_same_thread": False},
    )
    SQLModel.metadata.create_all(db_engine)
    yield db_engine
    db_engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as db_session:
        yield db_session


@pytest.fixture
def make_user(session):
    """Factory creating users with unique names."""
    counter = {"n": 0}

    def _make_user(name=None):
        counter["n"] += 1
        return user_service.create_user(session, name or f"learner-{counter['n']}")

    return _make_user


@pytest.fixture
def make_deck(session):
    """Factory creating decks with unique names."""
    counter = {"n": 0}

    def _make_deck(name=None, description=None):
        counter["n"] += 1
        return card_service.create_deck(session, name or f"deck-{counter['n']}", description)

    return _make_deck


@pytest.fixture
def make_card(session):
    """Factory creating classified cards through the card service."""

    def _make_card(deck, front, back="translation", tags=""):
        return card_service.create_card(session, deck.id, front, back, tags)

    return _make_card


@pytest.fixture
def make_unclassified_card(session):
    """Factory inserting cards directly, without a stored difficulty."""

    def _make_card(deck, front, back="translation", tags=""):
        card = Card(deck_id=deck.id, front=front, back=back, tags=tags)
        session.add(card)
        session.commit()
        session.refresh(card)
        return card

    return _make_card


@pytest.fixture
def user(make_user):
    return make_user()


@pytest.fixture
def deck(make_deck):
    return make_deck()


@pytest.fixture
def card(make_card, deck):
    return make_card(deck, "kot", "cat")
