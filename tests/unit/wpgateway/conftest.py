# -*- coding: utf-8 -*-
"""Location: ./tests/unit/wpgateway/conftest.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Shared fixtures: a throwaway SQLite database with seeded plans, a fast vault,
an in-memory cache and a fully onboarded tenant.
"""

# Standard
from datetime import datetime, timezone
from types import SimpleNamespace

# Third-Party
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# First-Party
from wpgateway.cache import MemoryCache
from wpgateway.db import Base, seed_plans
from wpgateway.services.api_key_service import ApiKeyService
from wpgateway.services.auth_service import AuthResolver
from wpgateway.services.connection_service import ConnectionCreate, ConnectionService
from wpgateway.services.encryption_service import EncryptionService
from wpgateway.services.quota_service import QuotaEnforcer
from wpgateway.services.rate_limiter import RateLimiter
from wpgateway.services.store import GatewayStore
from wpgateway.services.tenant_service import TenantService

ROOT_KEY = "unit-test-root-key-0123456789"
NOW = datetime(2025, 6, 15, 12, 0, 30, tzinfo=timezone.utc)


def make_vault(secret: str = ROOT_KEY) -> EncryptionService:
    return EncryptionService(secret, time_cost=1, memory_cost=1024, parallelism=1)


@pytest.fixture
def session_factory(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'gateway.db'}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    with factory() as db:
        seed_plans(db)
    yield factory
    engine.dispose()


@pytest.fixture
def db(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture(scope="session")
def vault():
    return make_vault()


@pytest.fixture
def vault_factory():
    return make_vault


@pytest.fixture
def root_key():
    return ROOT_KEY


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def cache():
    return MemoryCache()


@pytest.fixture
def store(session_factory):
    return GatewayStore(session_factory)


@pytest.fixture
def resolver(store, cache, vault):
    return AuthResolver(store, cache, vault, QuotaEnforcer(store), RateLimiter(cache, window=60, skew=10), clock=lambda: NOW)


@pytest.fixture
def tenant(db, cache, vault, resolver):
    """A tenant on the free plan with one connection and one live key."""
    user = TenantService(resolver=resolver).register(db, "owner@example.com", name="Owner")
    service = ConnectionService(vault, ApiKeyService(cache), resolver=resolver)
    data = ConnectionCreate(name="Blog", site_url="https://blog.example.com/", username="admin", password="abcd efgh ijkl mnop")
    connection, key, plaintext = service.create_connection(db, user.id, data)
    return SimpleNamespace(user=user, connection=connection, key=key, plaintext=plaintext, service=service)


@pytest.fixture
def auth_headers(tenant):
    return {"Authorization": f"Bearer {tenant.plaintext}"}
