"""
TrustNet Backend — Settings Tests
===================================

What:  Derivation of the token verification parameters from Cognito settings.
"""

from trustnet.config import Settings

REGION = "ap-southeast-1"
POOL_ID = "ap-southeast-1_TEST"
COGNITO_ISSUER = f"https://cognito-idp.{REGION}.amazonaws.com/{POOL_ID}"


def _settings(**overrides) -> Settings:
    values = {"cognito_region": REGION, "cognito_user_pool_id": POOL_ID, "jwt_audience": ""}
    values.update(overrides)
    return Settings(_env_file=None, **values)


class TestCognitoDerivation:

    def test_issuer_and_jwks_url_from_user_pool(self):
        settings = _settings()

        assert settings.resolved_issuer == COGNITO_ISSUER
        assert settings.resolved_jwks_url == f"{COGNITO_ISSUER}/.well-known/jwks.json"

    def test_audience_not_derived_from_user_pool(self):
        # Cognito access tokens have no `aud`; requiring one would reject them all
        assert _settings().resolved_audience is None

    def test_explicit_audience(self):
        assert _settings(jwt_audience="trustnet-web").resolved_audience == "trustnet-web"

    def test_explicit_overrides_win(self):
        settings = _settings(
            jwt_issuer="https://issuer.example.com",
            jwt_jwks_url="https://issuer.example.com/keys",
        )

        assert settings.resolved_issuer == "https://issuer.example.com"
        assert settings.resolved_jwks_url == "https://issuer.example.com/keys"
