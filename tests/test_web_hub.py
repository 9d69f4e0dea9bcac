import json
import random
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from fastapi.testclient import TestClient

from evenchess import storage
from evenchess.config import Config
from evenchess.engine.bridge import RandomMover
from evenchess.web import app as web_app


class WebHubTests(unittest.TestCase):
    def setUp(self) -> None:
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        cfg = Config()
        cfg.storage.dir = str(Path(tmp.name))
        cfg.display.flush_debounce_ms = 0

        for target, name, value in (
            (web_app, "config", cfg),
            (web_app, "_make_engine", lambda: RandomMover(random.Random(0))),
            (storage, "_SAVE_PATH", storage._SAVE_PATH),
            (storage, "_SETTINGS_PATH", storage._SETTINGS_PATH),
        ):
            patcher = patch.object(target, name, value)
            patcher.start()
            self.addCleanup(patcher.stop)
        self.client = TestClient(web_app.app)

    def _receive_until(self, ws, predicate, limit: int = 20) -> dict:
        for _ in range(limit):
            msg = json.loads(ws.receive_text())
            if predicate(msg):
                return msg
        self.fail("expected message never arrived")

    def test_config_endpoint(self) -> None:
        data = self.client.get("/api/config").json()
        self.assertEqual(data["image_size"], 200)
        self.assertEqual(data["tap_cooldown_ms"], 400)

    def test_session_over_websocket(self) -> None:
        with self.client.websocket_connect("/ws/hub") as ws:
            page = self._receive_until(ws, lambda m: m["type"] == "createPage")
            self.assertEqual(len(page["containers"]), 3)

            text = self._receive_until(ws, lambda m: m["type"] == "textUpdate")
            self.assertIn("White to move", text["content"])

            ws.send_json({"textEvent": {"eventType": 2}})
            text = self._receive_until(
                ws, lambda m: m["type"] == "textUpdate" and "Knight" in m["content"]
            )
            self.assertIn("Knight B1", text["content"])

            ws.send_json({"type": "stop"})
            self._receive_until(ws, lambda m: m["type"] == "shutdown")

    def test_board_image_is_svg(self) -> None:
        with self.client.websocket_connect("/ws/hub") as ws:
            image = self._receive_until(
                ws, lambda m: m["type"] == "imageUpdate" and m["containerName"] == "board"
            )
            self.assertTrue(image["svg"].startswith("<svg"))
            ws.send_json({"type": "stop"})


if __name__ == "__main__":
    unittest.main()
