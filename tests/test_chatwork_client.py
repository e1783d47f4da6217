import unittest

import httpx

from now_working.chatwork_client import ChatworkApiError, ChatworkClient


class ChatworkClientTests(unittest.IsolatedAsyncioTestCase):
    async def test_post_message(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["token"] = request.headers["X-ChatWorkToken"]
            seen["body"] = request.content.decode()
            return httpx.Response(200, json={"message_id": "1234"})

        client = ChatworkClient("cw-token", transport=httpx.MockTransport(handler))
        self.addAsyncCleanup(client.close)
        result = await client.post_message("42", "Alice checked in!")

        self.assertEqual(result, {"message_id": "1234"})
        self.assertEqual(seen["url"], "https://api.chatwork.com/v2/rooms/42/messages")
        self.assertEqual(seen["token"], "cw-token")
        self.assertIn("body=Alice+checked+in%21", seen["body"])

    async def test_error_response_raises(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(401, json={"errors": ["Invalid API token"]}))
        client = ChatworkClient("bad", transport=transport)
        self.addAsyncCleanup(client.close)
        with self.assertRaises(ChatworkApiError) as ctx:
            await client.post_message("42", "hi")
        self.assertEqual(ctx.exception.status_code, 401)


if __name__ == "__main__":
    unittest.main()
