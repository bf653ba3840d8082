from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from fhe_store.core.config import Settings
from fhe_store.core.database import build_engine, create_tables
from fhe_store.main import create_app
from fhe_store.services import (
    CryptoContext, EncryptedRecordStore, EqualityEngine, SchemeParameters, ValueCodec
)


@pytest.fixture(scope="session")
def scheme_parameters() -> SchemeParameters:
    return SchemeParameters()


@pytest.fixture(scope="session")
def crypto_context(scheme_parameters) -> CryptoContext:
    return CryptoContext.generate(scheme_parameters)


@pytest.fixture(scope="session")
def foreign_context(scheme_parameters) -> CryptoContext:
    """Same parameters, different key pair"""
    return CryptoContext.generate(scheme_parameters)


@pytest.fixture(scope="session")
def codec(crypto_context) -> ValueCodec:
    return ValueCodec(crypto_context)


@pytest.fixture(scope="session")
def foreign_codec(foreign_context) -> ValueCodec:
    return ValueCodec(foreign_context)


@pytest.fixture(scope="session")
def equality(codec) -> EqualityEngine:
    return EqualityEngine(codec)


@pytest.fixture
def key_file(tmp_path: Path) -> Path:
    return tmp_path / "config" / "fhe-params.json"


@pytest.fixture
def record_store(tmp_path: Path) -> EncryptedRecordStore:
    engine = build_engine(f"sqlite:///{tmp_path / 'records.db'}")
    create_tables(engine)
    yield EncryptedRecordStore(sessionmaker(bind=engine))
    engine.dispose()


@pytest.fixture
def app_settings(tmp_path: Path) -> Settings:
    return Settings(
        DATABASE_URL=f"sqlite:///{tmp_path / 'store.db'}",
        FHE_KEY_FILE=str(tmp_path / "keys" / "fhe-params.json"),
        SEARCH_TIMEOUT_SECONDS=30.0,
    )


@pytest.fixture
def make_client():
    """Start an application for the given settings; closed at teardown"""
    clients = []

    def _factory(settings: Settings) -> TestClient:
        client = TestClient(create_app(settings))
        client.__enter__()
        clients.append(client)
        return client

    yield _factory
    for client in reversed(clients):
        client.__exit__(None, None, None)


@pytest.fixture
def api_client(app_settings, make_client) -> TestClient:
    return make_client(app_settings)
