from .strategies import (
    AuthOutcome,
    Credentials,
    Authenticator,
    SharedSecretAuthenticator,
    TokenOracleAuthenticator,
)
