import logging

from jwtauth import DictConfigProvider, RateLimitExceeded, TokenService


def main() -> None:
    provider = DictConfigProvider(
        {
            "jwt.secret": "my-super-secret-key-with-at-least-32-bytes",
            "jwt.algorithm": "HS256",
            "jwt.issuer": "my-app",
            "jwt.rate.limit.enabled": "true",
            "jwt.rate.limit.requests.per.minute": 2,
        }
    )

    logger = logging.getLogger("jwt")
    service = TokenService.from_provider(provider, logger)
    print(service.security_info())

    tokens = service.issue("user-42")
    print("result:", service.validate(tokens.access_token))

    try:
        service.issue("user-43")
    except RateLimitExceeded as exc:
        print("issue blocked:", exc)

    try:
        service.validate(tokens.access_token)
    except RateLimitExceeded as exc:
        print("validate blocked:", exc)


if __name__ == "__main__":
    main()
