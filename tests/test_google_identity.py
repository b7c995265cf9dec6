import unittest
from unittest.mock import patch

from app.integrations.google_identity import GoogleIdentityProvider, IdentityError

VERIFY = "app.integrations.google_identity.id_token.verify_oauth2_token"


class GoogleIdentityProviderTests(unittest.IsolatedAsyncioTestCase):
    async def test_claims_become_user_identity(self):
        claims = {"iss": "accounts.google.com", "sub": "123", "email": "jane@example.com", "name": "Jane Doe"}
        provider = GoogleIdentityProvider("client-id")
        with patch(VERIFY, return_value=claims) as verify:
            user = await provider.verify(" token ")

        self.assertEqual(user.uid, "123")
        self.assertEqual(user.display_name, "Jane Doe")
        self.assertEqual(verify.call_args.args[0], "token")
        self.assertEqual(verify.call_args.args[2], "client-id")

    async def test_display_name_falls_back_to_email(self):
        claims = {"iss": "https://accounts.google.com", "sub": "123", "email": "jane@example.com"}
        with patch(VERIFY, return_value=claims):
            user = await GoogleIdentityProvider("client-id").verify("token")
        self.assertEqual(user.display_name, "jane")

    async def test_rejected_tokens(self):
        provider = GoogleIdentityProvider("client-id")
        with patch(VERIFY, side_effect=ValueError("Token expired")):
            with self.assertRaises(IdentityError) as ctx:
                await provider.verify("token")
        self.assertEqual(ctx.exception.message, "Token expired")

        with patch(VERIFY, return_value={"iss": "evil.example", "sub": "1"}):
            with self.assertRaises(IdentityError):
                await provider.verify("token")

    async def test_unconfigured_client_id(self):
        with self.assertRaises(IdentityError) as ctx:
            await GoogleIdentityProvider(None).verify("token")
        self.assertEqual(ctx.exception.code, "not_configured")


if __name__ == "__main__":
    unittest.main()
