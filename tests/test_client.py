import json
import unittest

import httpx

from app.client import ChatClient, follow_stream, parse_events
from patient.errors import StreamAborted


def sse(*payloads):
    return "".join(f"data: {json.dumps(p)}\n\n" for p in payloads).encode("utf-8")


class TestParsing(unittest.TestCase):
    def test_parse_events_skips_noise(self):
        lines = [": heartbeat", "", 'data: {"content": "Hi"}', "data: not-json", 'data: ["list"]']
        self.assertEqual(list(parse_events(lines)), [{"content": "Hi"}])

    def test_follow_stream_reports_running_text(self):
        lines = sse(
            {"content": "Look,"},
            {"content": " "},
            {"content": "fine."},
            {"done": True, "fullResponse": "Look,  fine."},
        ).decode().splitlines()
        stream = follow_stream(lines)
        self.assertEqual(next(stream), "Look,")
        self.assertEqual(next(stream), "Look, ")
        self.assertEqual(next(stream), "Look, fine.")
        with self.assertRaises(StopIteration) as ctx:
            next(stream)
        self.assertEqual(ctx.exception.value, "Look,  fine.")

    def test_missing_terminal_chunk(self):
        lines = sse({"content": "Half"}).decode().splitlines()
        with self.assertRaises(StreamAborted):
            list(follow_stream(lines))


class TestChatClient(unittest.TestCase):
    def setUp(self):
        self.requests = []

    def transport(self, status=200, body=b""):
        def handler(request):
            self.requests.append(request)
            headers = {"content-type": "text/event-stream"} if status == 200 else {}
            return httpx.Response(status, headers=headers, content=body)

        return httpx.MockTransport(handler)

    def test_ask_returns_full_reply(self):
        body = sse({"content": "Okay."}, {"done": True, "fullResponse": "Okay."})
        with ChatClient("http://relay.test", transport=self.transport(body=body)) as client:
            history = [{"sender": "therapist", "content": "Hello"}]
            self.assertEqual(client.ask("How are you?", "experienced", history), "Okay.")

        sent = json.loads(self.requests[0].content)
        self.assertEqual(self.requests[0].url.path, "/api/chat")
        self.assertEqual(
            sent,
            {"message": "How are you?", "patientType": "experienced", "chatHistory": history},
        )

    def test_error_status_raises(self):
        body = json.dumps({"detail": "Invalid patient type"}).encode()
        with ChatClient("http://relay.test", transport=self.transport(400, body)) as client:
            with self.assertRaises(httpx.HTTPStatusError):
                client.ask("Hello", "veteran")


if __name__ == "__main__":
    unittest.main()
