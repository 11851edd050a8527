"""Password and OAuth/OIDC sign-on with signed-cookie sessions."""

__version__ = "0.1.0"
