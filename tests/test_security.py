import unittest

from now_working.security import SharedTokenVerifier, SlackSignatureVerifier


class SharedTokenVerifierTests(unittest.TestCase):
    def test_matching_token(self):
        self.assertTrue(SharedTokenVerifier("s3cret").verify("s3cret"))

    def test_wrong_token(self):
        self.assertFalse(SharedTokenVerifier("s3cret").verify("guess"))

    def test_unconfigured_secret_rejects_everything(self):
        self.assertFalse(SharedTokenVerifier("").verify(""))


class SlackSignatureVerifierTests(unittest.TestCase):
    def setUp(self):
        self.now = 1_700_000_000
        self.verifier = SlackSignatureVerifier("8f742231b10e8888abcd99yyyzzz85a5", clock=lambda: self.now)
        self.body = b"command=%2Fcheckin&text=office&user_id=U1"

    def test_valid_signature(self):
        ts = str(self.now)
        signature = self.verifier.signature(ts, self.body)
        self.assertTrue(signature.startswith("v0="))
        self.assertTrue(self.verifier.verify_request(ts, self.body, signature))

    def test_tampered_body(self):
        ts = str(self.now)
        signature = self.verifier.signature(ts, self.body)
        self.assertFalse(self.verifier.verify_request(ts, self.body + b"x", signature))

    def test_stale_timestamp(self):
        ts = str(self.now - 10 * 60)
        signature = self.verifier.signature(ts, self.body)
        self.assertFalse(self.verifier.verify_request(ts, self.body, signature))

    def test_garbage_timestamp(self):
        self.assertFalse(self.verifier.verify_request("yesterday", self.body, "v0=abc"))

    def test_signature_matches_slack_reference(self):
        # worked example from the Slack request signing documentation
        body = (
            b"token=xyzz0WbapA4vBCDEFasx0q6G&team_id=T1DC2JH3J&team_domain=testteamnow&channel_id=G8PSS9T3V"
            b"&channel_name=foobar&user_id=U2CERLKJA&user_name=roadrunner&command=%2Fwebhook-collect&text="
            b"&response_url=https%3A%2F%2Fhooks.slack.com%2Fcommands%2FT1DC2JH3J%2F397700885554%2F96rGlfmibIGlgcZRskXaIFfN"
            b"&trigger_id=398738663015.47445629121.803a0bc887a14d10d2c447fce8b6703c"
        )
        verifier = SlackSignatureVerifier("8f742231b10e8888abcd99yyyzzz85a5", clock=lambda: 1531420618)
        self.assertTrue(
            verifier.verify_request(
                "1531420618", body, "v0=a2114d57b48eac39b9ad189dd8316235a7b4a8d21a10bd27519666489c69b503"
            )
        )

    def test_missing_secret(self):
        verifier = SlackSignatureVerifier("", clock=lambda: self.now)
        self.assertFalse(verifier.verify_request(str(self.now), self.body, "v0=abc"))


if __name__ == "__main__":
    unittest.main()
