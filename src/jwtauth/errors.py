"""Hierarquia de erros do jwtauth."""


class JWTAuthError(Exception):
    """Erro base para o jwtauth."""


class ConfigurationError(JWTAuthError):
    """Lancado quando segredo, chaves ou parametros de configuracao sao invalidos."""


class RateLimitExceeded(JWTAuthError):
    """Lancado quando o limite de requisicoes por minuto e excedido."""


class IssuanceFailed(JWTAuthError):
    """Lancado quando um par de tokens nao pode ser gerado."""


class TokenError(JWTAuthError):
    """Erro base para falhas de decodificacao e verificacao de tokens."""


class TokenMalformed(TokenError):
    """O token nao pode ser interpretado."""


class SignatureInvalid(TokenError):
    """A assinatura do token nao confere."""


class TokenExpired(TokenError):
    """O token passou do seu exp."""


class InvalidClaims(TokenError):
    """Issuer, audience ou claims obrigatorias nao conferem."""
