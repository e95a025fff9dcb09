# Card encryption, key storage and tokenization
from .keystore import KeyStore, StaticKeyStore
from .cipher import CardCipher
from .vault import (
    TokenVault,
    VaultEntry,
    InMemoryTokenVault,
    RedisTokenVault,
    PostgresTokenVault,
)
from .tokenizer import CardTokenizer, generate_secure_token, token_leaks_number

__all__ = [
    "KeyStore",
    "StaticKeyStore",
    "CardCipher",
    "TokenVault",
    "VaultEntry",
    "InMemoryTokenVault",
    "RedisTokenVault",
    "PostgresTokenVault",
    "CardTokenizer",
    "generate_secure_token",
    "token_leaks_number",
]
