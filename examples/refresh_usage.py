"""Example demonstrating refresh token rotation and IP binding."""

import logging

from jwtauth import DictConfigProvider, TokenService


def main() -> None:
    # Audit events are logged at INFO level
    logging.basicConfig(level=logging.INFO)
    logger = logging.getLogger("jwt")

    provider = DictConfigProvider(
        {
            "jwt.secret": "my-super-secret-key-with-at-least-32-bytes",
            "jwt.algorithm": "HS256",
            "jwt.issuer": "my-app",
            "jwt.ip.validation.enabled": "true",
            "jwt.refresh.rotation.enabled": "true",
        }
    )
    service = TokenService.from_provider(provider, logger)

    print("=" * 60)
    print("Refresh and IP binding")
    print("=" * 60)

    tokens = service.issue("user-42", client_ip="10.0.0.1")

    print("\n1. Validating from the same IP")
    print("   ", service.validate(tokens.access_token, "10.0.0.1"))

    print("\n2. Validating from another IP")
    print("   ", service.validate(tokens.access_token, "10.0.0.99"))

    print("\n3. Refreshing with the access token (rejected)")
    print("   ", service.refresh(tokens.access_token, "10.0.0.1").reason.value)

    print("\n4. Refreshing with the refresh token")
    result = service.refresh(tokens.refresh_token, "10.0.0.1")
    print("   ", result.reason.value, "->", result.tokens)

    print("\n5. Reusing the rotated refresh token (rejected)")
    print("   ", service.refresh(tokens.refresh_token, "10.0.0.1").reason.value)


if __name__ == "__main__":
    main()
