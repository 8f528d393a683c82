import json
import unittest
import httpx
from fastapi.testclient import TestClient
from fieldsync import server
from fieldsync.config import settings
from fieldsync.server import ServerRecordRepository
from fieldsync.storage import KeyValueStorage

class TestRecordsEndpoint(unittest.TestCase):
    def setUp(self):
        server.repository = ServerRecordRepository(KeyValueStorage("unused", persist=False))
        self.client = TestClient(server.app)

    def tearDown(self):
        server.repository = None

    def test_healthz(self):
        self.assertEqual(self.client.get("/healthz").json(), {"status": "ok"})

    def test_upsert_and_list(self):
        resp = self.client.post("/api/records", json={"id": "r1", "fieldId": "F1"})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"id": "r1", "fieldId": "F1"})

        self.client.post("/api/records", json={"id": "r1", "fieldId": "F2"})
        self.client.post("/api/records", json={"id": "r2"})

        listed = {r["id"]: r for r in self.client.get("/api/records").json()}
        self.assertEqual(set(listed), {"r1", "r2"})
        self.assertEqual(listed["r1"]["fieldId"], "F2")

    def test_record_without_id_rejected(self):
        resp = self.client.post("/api/records", json={"fieldId": "F1"})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["detail"], "Invalid record data")

    def test_non_scalar_id_rejected(self):
        for bad_id in (["r1"], {"id": "r1"}, True, None, ""):
            with self.subTest(bad_id=bad_id):
                resp = self.client.post("/api/records", json={"id": bad_id})
                self.assertEqual(resp.status_code, 400)
                self.assertEqual(resp.json()["detail"], "Invalid record data")
        self.assertEqual(self.client.get("/api/records").json(), [])

    def test_integer_id_accepted(self):
        self.assertEqual(self.client.post("/api/records", json={"id": 7}).status_code, 200)
        self.assertEqual(self.client.get("/api/records").json(), [{"id": 7}])

    def test_non_object_body_rejected(self):
        self.assertEqual(self.client.post("/api/records", json=["r1"]).status_code, 400)
        resp = self.client.post("/api/records", content=b"not json", headers={"content-type": "application/json"})
        self.assertEqual(resp.status_code, 400)

class TestTTSProxy(unittest.TestCase):
    def setUp(self):
        self.client = TestClient(server.app)
        self.original_key = settings.SARVAM_API_KEY
        settings.SARVAM_API_KEY = "test-key"
        self.vendor_requests = []

    def tearDown(self):
        settings.SARVAM_API_KEY = self.original_key
        server.tts_transport = None

    def vendor(self, response):
        def handler(request):
            self.vendor_requests.append(request)
            return response
        server.tts_transport = httpx.MockTransport(handler)

    def test_missing_parameters(self):
        self.assertEqual(self.client.get("/api/tts", params={"text": "hello"}).status_code, 400)
        self.assertEqual(self.client.get("/api/tts", params={"language": "en"}).status_code, 400)

    def test_unconfigured_key(self):
        settings.SARVAM_API_KEY = None
        resp = self.client.get("/api/tts", params={"text": "hello", "language": "en"})
        self.assertEqual(resp.status_code, 503)

    def test_streams_vendor_audio(self):
        self.vendor(httpx.Response(200, content=b"ID3audio-bytes", headers={"content-type": "audio/mpeg"}))

        resp = self.client.get("/api/tts", params={"text": "Take a photo", "language": "od"})

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.content, b"ID3audio-bytes")
        self.assertTrue(resp.headers["content-type"].startswith("audio/mpeg"))
        self.assertEqual(resp.headers["cache-control"], "no-store, max-age=0")

        sent = self.vendor_requests[0]
        self.assertEqual(sent.headers["api-subscription-key"], "test-key")
        payload = json.loads(sent.content)
        self.assertEqual(payload["text"], "Take a photo")
        self.assertEqual(payload["target_language_code"], "or-IN")
        self.assertEqual(payload["output_audio_codec"], "mp3")

    def test_unknown_language_falls_back_to_english(self):
        self.vendor(httpx.Response(200, content=b"x", headers={"content-type": "audio/mpeg"}))
        self.client.get("/api/tts", params={"text": "hello", "language": "fr"})
        self.assertEqual(json.loads(self.vendor_requests[0].content)["target_language_code"], "en-IN")

    def test_vendor_error_is_bad_gateway(self):
        self.vendor(httpx.Response(401, json={"error": "bad key"}))
        resp = self.client.get("/api/tts", params={"text": "hello", "language": "hi"})
        self.assertEqual(resp.status_code, 502)

if __name__ == '__main__':
    unittest.main()
