import logging

from jwtauth import (
    DictConfigProvider,
    InMemoryRevocationStore,
    SQLiteRevocationStore,
    TokenService,
)


def build_service(store):
    provider = DictConfigProvider(
        {
            "jwt.secret": "my-super-secret-key-with-at-least-32-bytes",
            "jwt.algorithm": "HS256",
            "jwt.issuer": "my-app",
        }
    )
    logger = logging.getLogger("jwt")
    return TokenService.from_provider(provider, logger, revocation_store=store)


def run_in_memory_example() -> None:
    print("=== In-memory revocation store ===")
    store = InMemoryRevocationStore()
    service = build_service(store)

    tokens = service.issue("user-42")
    print("Before revoke:", service.validate(tokens.access_token).reason.value)

    service.revoke(tokens.access_token)
    print("After revoke:", service.validate(tokens.access_token).reason.value)
    print("Swept:", service.sweep_revoked())


def run_sqlite_example() -> None:
    print("=== SQLite revocation store ===")
    with SQLiteRevocationStore("revocations.db") as store:
        service = build_service(store)

        tokens = service.issue("user-42")
        print("Before revoke:", service.validate(tokens.access_token).reason.value)

        service.revoke(tokens.access_token)
        print("After revoke:", service.validate(tokens.access_token).reason.value)


if __name__ == "__main__":
    run_in_memory_example()
    run_sqlite_example()
