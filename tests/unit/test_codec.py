import jwt
import pytest

from jwtauth import (
    AlgorithmManager,
    DictConfigProvider,
    InvalidClaims,
    SignatureInvalid,
    TokenClaims,
    TokenExpired,
    TokenMalformed,
    TokenType,
    decode_claims,
    encode_claims,
    verify_claims,
)
from jwtauth.algorithms import Algorithm, ResolvedAlgorithm
from jwtauth.codec import is_token_expired, new_token_id

NOW = 1_700_000_000


@pytest.fixture()
def algorithm(provider, logger, clock) -> ResolvedAlgorithm:
    return AlgorithmManager(provider, logger, time_fn=clock).resolve()


def make_claims(**overrides) -> TokenClaims:
    values = {
        "subject": "u1",
        "token_type": TokenType.ACCESS,
        "token_id": "tid-1",
        "issued_at": NOW,
        "not_before": NOW,
        "expires_at": NOW + 60,
        "issuer": "issuer",
        "audience": "audience",
        "client_ip": "10.0.0.1",
    }
    values.update(overrides)
    return TokenClaims(**values)


def test_encode_uses_standard_claim_names(algorithm) -> None:
    token = encode_claims(make_claims(), algorithm)

    payload = jwt.decode(token, options={"verify_signature": False})

    assert payload == {
        "sub": "u1",
        "iss": "issuer",
        "aud": "audience",
        "userId": "u1",
        "type": "access",
        "clientIp": "10.0.0.1",
        "tokenId": "tid-1",
        "iat": NOW,
        "nbf": NOW,
        "exp": NOW + 60,
    }
    assert jwt.get_unverified_header(token)["alg"] == "HS256"


def test_encode_omits_missing_client_ip(algorithm) -> None:
    token = encode_claims(make_claims(client_ip=None), algorithm)

    assert "clientIp" not in jwt.decode(token, options={"verify_signature": False})


def test_decode_without_verification_returns_claims(algorithm) -> None:
    claims = make_claims(token_type=TokenType.REFRESH)
    token = encode_claims(claims, algorithm)

    assert decode_claims(token) == claims


def test_decode_keeps_unknown_token_type(algorithm) -> None:
    token = encode_claims(make_claims(token_type="service"), algorithm)

    assert decode_claims(token).token_type == "service"


def test_decode_malformed_token() -> None:
    with pytest.raises(TokenMalformed):
        decode_claims("not-a-token")


def test_decode_rejects_non_numeric_dates(algorithm) -> None:
    token = jwt.encode({"sub": "u1", "exp": "tomorrow"}, algorithm.signing_key, algorithm="HS256")

    with pytest.raises(TokenMalformed, match="exp"):
        decode_claims(token)


@pytest.mark.parametrize("exp", [float("nan"), float("inf"), float("-inf")])
def test_decode_rejects_non_finite_dates(algorithm, exp) -> None:
    token = jwt.encode({"sub": "u1", "exp": exp}, algorithm.signing_key, algorithm="HS256")

    with pytest.raises(TokenMalformed, match="exp"):
        decode_claims(token)
    assert is_token_expired(token, NOW) is True


def test_verify_returns_claims(algorithm) -> None:
    claims = make_claims()
    token = encode_claims(claims, algorithm)

    assert verify_claims(token, algorithm, "issuer", "audience", NOW + 60) == claims


def test_verify_expired_token(algorithm) -> None:
    token = encode_claims(make_claims(), algorithm)

    with pytest.raises(TokenExpired):
        verify_claims(token, algorithm, "issuer", "audience", NOW + 61)


def test_verify_does_not_check_not_before(algorithm) -> None:
    token = encode_claims(make_claims(not_before=NOW + 30), algorithm)

    assert verify_claims(token, algorithm, "issuer", "audience", NOW).not_before == NOW + 30


def test_verify_bad_signature(algorithm) -> None:
    other = ResolvedAlgorithm(Algorithm.HS256, "x" * 64, "x" * 64)
    token = encode_claims(make_claims(), other)

    with pytest.raises(SignatureInvalid):
        verify_claims(token, algorithm, "issuer", "audience", NOW)


def test_verify_rejects_other_algorithm(algorithm) -> None:
    other = ResolvedAlgorithm(Algorithm.HS512, algorithm.signing_key, algorithm.signing_key)
    token = encode_claims(make_claims(), other)

    with pytest.raises(SignatureInvalid):
        verify_claims(token, algorithm, "issuer", "audience", NOW)


@pytest.mark.parametrize(
    "issuer, audience",
    [("other-issuer", "audience"), ("issuer", "other-audience")],
)
def test_verify_issuer_and_audience(algorithm, issuer, audience) -> None:
    token = encode_claims(make_claims(), algorithm)

    with pytest.raises(InvalidClaims):
        verify_claims(token, algorithm, issuer, audience, NOW)


def test_verify_requires_exp(algorithm) -> None:
    token = encode_claims(make_claims(expires_at=None), algorithm)

    with pytest.raises(InvalidClaims, match="exp"):
        verify_claims(token, algorithm, "issuer", "audience", NOW)


def test_verify_garbage(algorithm) -> None:
    with pytest.raises(TokenMalformed):
        verify_claims("a.b.c", algorithm, "issuer", "audience", NOW)


def test_is_token_expired(algorithm) -> None:
    token = encode_claims(make_claims(), algorithm)

    assert is_token_expired(token, NOW + 60) is False
    assert is_token_expired(token, NOW + 61) is True
    assert is_token_expired("garbage", NOW) is True


def test_rsa_round_trip(rsa_key_files, logger, clock) -> None:
    private_path, public_path = rsa_key_files
    provider = DictConfigProvider(
        {
            "jwt.algorithm": "RS256",
            "jwt.private.key.path": private_path,
            "jwt.public.key.path": public_path,
        }
    )
    rsa_algorithm = AlgorithmManager(provider, logger, time_fn=clock).resolve()
    claims = make_claims()

    token = encode_claims(claims, rsa_algorithm)

    assert jwt.get_unverified_header(token)["alg"] == "RS256"
    assert verify_claims(token, rsa_algorithm, "issuer", "audience", NOW) == claims


def test_token_ids_are_unique() -> None:
    ids = {new_token_id() for _ in range(1000)}

    assert len(ids) == 1000
    assert all("=" not in token_id for token_id in ids)
