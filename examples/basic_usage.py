import logging

from jwtauth import DictConfigProvider, TokenService


def main() -> None:
    provider = DictConfigProvider(
        {
            "jwt.secret": "my-super-secret-key-with-at-least-32-bytes",
            "jwt.algorithm": "HS256",
            "jwt.issuer": "my-app",
            "jwt.audience": "my-app-clients",
        }
    )

    logger = logging.getLogger("jwt")
    service = TokenService.from_provider(provider, logger)

    tokens = service.issue("user-42", client_ip="192.168.0.10")

    print("access token:", tokens.access_token)
    print("expires in:", tokens.access_expires_in, "seconds")
    print("result:", service.validate(tokens.access_token, "192.168.0.10"))
    print("remaining:", service.remaining_seconds(tokens.access_token))
    print(service.algorithm_info())


if __name__ == "__main__":
    main()
