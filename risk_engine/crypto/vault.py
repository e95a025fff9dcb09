"""
Token Vault

Stores each CardToken together with the ciphertext of the card it
references. The vault never sees plaintext card data.

Backends:
- InMemoryTokenVault: single process, tests and development
- RedisTokenVault: one hash per token
- PostgresTokenVault: ``card_tokens`` table via SQLAlchemy async
"""

import base64
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

import redis.asyncio as redis
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from ..errors import TokenNotFound
from ..schemas import CardBrand, CardToken, EncryptedCardData

logger = logging.getLogger("risk_engine.vault")


class VaultEntry(BaseModel):
    """A token and the encrypted card it stands for."""
    token: CardToken
    encrypted: EncryptedCardData


class TokenVault(ABC):
    """Persistence for tokens and their encrypted card data."""

    name = "token_vault"

    @abstractmethod
    async def store(self, token: CardToken, encrypted: EncryptedCardData) -> None:
        """Persist a new token. Raises on storage failure."""

    @abstractmethod
    async def load(self, token_id: str) -> Optional[VaultEntry]:
        """Return the entry for a token id, or None."""

    @abstractmethod
    async def revoke(self, token_id: str) -> CardToken:
        """
        Mark a token inactive.

        Raises:
            TokenNotFound: if no token has this id
        """


class InMemoryTokenVault(TokenVault):
    """Dict-backed vault."""

    name = "memory_vault"

    def __init__(self):
        self._entries: dict[str, VaultEntry] = {}

    async def store(self, token: CardToken, encrypted: EncryptedCardData) -> None:
        self._entries[token.id] = VaultEntry(token=token, encrypted=encrypted)

    async def load(self, token_id: str) -> Optional[VaultEntry]:
        return self._entries.get(token_id)

    async def revoke(self, token_id: str) -> CardToken:
        entry = self._entries.get(token_id)
        if entry is None:
            raise TokenNotFound(f"Token '{token_id}' not found")
        revoked = entry.token.revoked()
        self._entries[token_id] = VaultEntry(token=revoked, encrypted=entry.encrypted)
        return revoked

    def __len__(self) -> int:
        return len(self._entries)


class RedisTokenVault(TokenVault):
    """
    Vault backed by Redis hashes.

    Key format: {prefix}vault:{token_id}
    Binary fields are stored base64-encoded (client uses decode_responses=True).
    """

    name = "redis_vault"

    def __init__(self, redis_client: redis.Redis, key_prefix: str = "risk:"):
        self.redis = redis_client
        self.prefix = key_prefix

    def _make_key(self, token_id: str) -> str:
        return f"{self.prefix}vault:{token_id}"

    async def store(self, token: CardToken, encrypted: EncryptedCardData) -> None:
        await self.redis.hset(
            self._make_key(token.id),
            mapping={
                "token": token.model_dump_json(),
                "ciphertext": base64.b64encode(encrypted.ciphertext).decode(),
                "nonce": base64.b64encode(encrypted.nonce).decode(),
                "key_id": encrypted.key_id,
                "version": encrypted.version,
                "encrypted_at": encrypted.created_at.isoformat(),
            },
        )

    async def load(self, token_id: str) -> Optional[VaultEntry]:
        data = await self.redis.hgetall(self._make_key(token_id))
        if not data:
            return None
        return VaultEntry(
            token=CardToken.model_validate_json(data["token"]),
            encrypted=EncryptedCardData(
                ciphertext=base64.b64decode(data["ciphertext"]),
                nonce=base64.b64decode(data["nonce"]),
                key_id=data["key_id"],
                version=data["version"],
                created_at=datetime.fromisoformat(data["encrypted_at"]),
            ),
        )

    async def revoke(self, token_id: str) -> CardToken:
        key = self._make_key(token_id)
        raw = await self.redis.hget(key, "token")
        if raw is None:
            raise TokenNotFound(f"Token '{token_id}' not found")
        revoked = CardToken.model_validate_json(raw).revoked()
        await self.redis.hset(key, "token", revoked.model_dump_json())
        return revoked


CREATE_TABLE_SQL = """
    CREATE TABLE IF NOT EXISTS card_tokens (
        id VARCHAR(64) PRIMARY KEY,
        last_four_digits VARCHAR(4) NOT NULL,
        expiry_month SMALLINT NOT NULL,
        expiry_year SMALLINT NOT NULL,
        card_brand VARCHAR(16) NOT NULL,
        created_at TIMESTAMPTZ NOT NULL,
        is_active BOOLEAN NOT NULL DEFAULT TRUE,
        ciphertext BYTEA NOT NULL,
        nonce BYTEA NOT NULL,
        key_id VARCHAR(64) NOT NULL,
        payload_version VARCHAR(8) NOT NULL,
        encrypted_at TIMESTAMPTZ NOT NULL
    )
"""


class PostgresTokenVault(TokenVault):
    """Vault backed by the ``card_tokens`` table."""

    name = "postgres_vault"

    def __init__(self, database_url: str, echo: bool = False):
        """
        Initialize vault.

        Args:
            database_url: SQLAlchemy async URL (postgresql+asyncpg://...)
            echo: Log SQL statements
        """
        self.database_url = database_url
        self.echo = echo
        self.engine = None
        self.session_factory = None

    async def initialize(self) -> None:
        """Create the engine and session factory."""
        self.engine = create_async_engine(
            self.database_url,
            echo=self.echo,
            pool_size=5,
            max_overflow=10,
            pool_pre_ping=True,
        )
        self.session_factory = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    async def create_schema(self) -> None:
        async with self._session() as session:
            await session.execute(text(CREATE_TABLE_SQL))
            await session.commit()

    async def close(self) -> None:
        """Close database connections."""
        if self.engine:
            await self.engine.dispose()

    async def health_check(self) -> bool:
        async with self._session() as session:
            result = await session.execute(text("SELECT 1"))
            return result.scalar() == 1

    def _session(self) -> AsyncSession:
        if not self.session_factory:
            raise RuntimeError("Token vault database not initialized")
        return self.session_factory()

    async def store(self, token: CardToken, encrypted: EncryptedCardData) -> None:
        async with self._session() as session:
            await session.execute(
                text("""
                    INSERT INTO card_tokens (
                        id, last_four_digits, expiry_month, expiry_year,
                        card_brand, created_at, is_active,
                        ciphertext, nonce, key_id, payload_version, encrypted_at
                    ) VALUES (
                        :id, :last_four_digits, :expiry_month, :expiry_year,
                        :card_brand, :created_at, :is_active,
                        :ciphertext, :nonce, :key_id, :payload_version, :encrypted_at
                    )
                """),
                {
                    "id": token.id,
                    "last_four_digits": token.last_four_digits,
                    "expiry_month": token.expiry_month,
                    "expiry_year": token.expiry_year,
                    "card_brand": token.card_brand.value,
                    "created_at": token.created_at,
                    "is_active": token.is_active,
                    "ciphertext": encrypted.ciphertext,
                    "nonce": encrypted.nonce,
                    "key_id": encrypted.key_id,
                    "payload_version": encrypted.version,
                    "encrypted_at": encrypted.created_at,
                },
            )
            await session.commit()

    async def load(self, token_id: str) -> Optional[VaultEntry]:
        async with self._session() as session:
            result = await session.execute(
                text("SELECT * FROM card_tokens WHERE id = :id"),
                {"id": token_id},
            )
            row = result.mappings().first()
        if row is None:
            return None
        return VaultEntry(
            token=self._token_from_row(row),
            encrypted=EncryptedCardData(
                ciphertext=bytes(row["ciphertext"]),
                nonce=bytes(row["nonce"]),
                key_id=row["key_id"],
                version=row["payload_version"],
                created_at=row["encrypted_at"],
            ),
        )

    async def revoke(self, token_id: str) -> CardToken:
        async with self._session() as session:
            result = await session.execute(
                text("""
                    UPDATE card_tokens SET is_active = FALSE
                    WHERE id = :id
                    RETURNING id, last_four_digits, expiry_month, expiry_year,
                              card_brand, created_at, is_active
                """),
                {"id": token_id},
            )
            row = result.mappings().first()
            await session.commit()
        if row is None:
            raise TokenNotFound(f"Token '{token_id}' not found")
        return self._token_from_row(row)

    @staticmethod
    def _token_from_row(row) -> CardToken:
        return CardToken(
            id=row["id"],
            last_four_digits=row["last_four_digits"],
            expiry_month=row["expiry_month"],
            expiry_year=row["expiry_year"],
            card_brand=CardBrand(row["card_brand"]),
            created_at=row["created_at"],
            is_active=row["is_active"],
        )
