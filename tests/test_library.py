import base64
import json
import tempfile
import threading
import unittest
from pathlib import Path

from recordathon.config import Settings
from recordathon.cuts import CutWindow
from recordathon.errors import ClientInputError, NotFoundError, StartupCorruptionError, StorageIOError
from recordathon.library import Library, Upload, parse_upload
from tests.helpers import tone, wav_bytes

AUDIO = wav_bytes(tone(0.1))


def upload_body(name="voice", data=AUDIO, cut=None, **extra):
    body = {"name": name, "data": base64.b64encode(data).decode("ascii")}
    if cut is not None:
        body["cut"] = cut
    body.update(extra)
    return json.dumps(body).encode()


class TestParseUpload(unittest.TestCase):
    def test_valid(self):
        upload = parse_upload(upload_body(name="my.take/1", cut={"start": 0.5, "end": 1.5}))
        self.assertEqual(upload.name, "mytake1")
        self.assertEqual(upload.data, AUDIO)
        self.assertEqual(upload.cut, CutWindow(start=0.5, end=1.5))

    def test_cut_is_optional(self):
        self.assertIsNone(parse_upload(upload_body()).cut)

    def test_malformed_json(self):
        with self.assertRaises(ClientInputError):
            parse_upload(b"{\"name\": ")

    def test_missing_fields(self):
        with self.assertRaises(ClientInputError):
            parse_upload(json.dumps({"name": "x"}).encode())

    def test_malformed_base64(self):
        body = json.dumps({"name": "x", "data": "!!!not base64!!!"}).encode()
        with self.assertRaises(ClientInputError):
            parse_upload(body)

    def test_undecodable_audio(self):
        with self.assertRaises(ClientInputError):
            parse_upload(upload_body(data=b"not a wav file"))

    def test_name_empty_after_sanitizing(self):
        with self.assertRaises(ClientInputError):
            parse_upload(upload_body(name="../."))


class TestLibrary(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.root = Path(self.tmp.name)
        self.library = Library.open(Settings(root=self.root))

    def tearDown(self):
        self.tmp.cleanup()

    def test_add_then_everything_agrees(self):
        window = CutWindow(start=0.25, end=0.75)
        self.library.add(Upload(name="voice", data=b"audio", cut=window))

        self.assertIn("voice", self.library.list_recordings())
        self.assertEqual(self.library.get_cut("voice"), window)
        self.assertEqual(self.library.edit_info("voice"), (window, b"audio"))

    def test_add_without_cut_drops_stale_cut(self):
        self.library.add(Upload(name="voice", data=b"a", cut=CutWindow(start=0, end=1)))
        self.library.add(Upload(name="voice", data=b"b", cut=None))
        self.assertIsNone(self.library.get_cut("voice"))
        self.assertEqual(self.library.load("voice"), (None, b"b"))
        with self.assertRaises(NotFoundError):
            self.library.edit_info("voice")

    def test_colliding_names_last_write_wins(self):
        self.library.add(Upload(name="ab", data=b"first", cut=CutWindow(start=0, end=1)))
        self.library.add(parse_upload(upload_body(name="a.b", cut={"start": 2, "end": 3})))
        self.assertEqual(self.library.list_recordings(), ["ab"])
        self.assertEqual(self.library.edit_info("ab"), (CutWindow(start=2, end=3), AUDIO))

    def test_delete_is_inverse_of_add(self):
        self.library.add(Upload(name="voice", data=b"audio", cut=CutWindow(start=0, end=1)))
        self.library.delete("voice")
        self.assertNotIn("voice", self.library.list_recordings())
        self.assertIsNone(self.library.get_cut("voice"))

    def test_delete_unknown_still_removes_cut(self):
        self.library.cuts.set("orphan", CutWindow(start=0, end=1))
        with self.assertRaises(NotFoundError):
            self.library.delete("orphan")
        self.assertIsNone(self.library.get_cut("orphan"))
        self.assertNotIn("orphan", json.loads((self.root / "cuts.json").read_text()))

    def test_edit_info_unknown(self):
        with self.assertRaises(NotFoundError):
            self.library.edit_info("ghost")

    def test_set_cut_requires_recording(self):
        with self.assertRaises(NotFoundError):
            self.library.set_cut("ghost", CutWindow(start=0, end=1))
        self.library.add(Upload(name="voice", data=b"x", cut=None))
        self.library.set_cut("voice", CutWindow(start=0.1, end=0.2))
        self.assertEqual(self.library.get_cut("voice"), CutWindow(start=0.1, end=0.2))

    def test_state_survives_restart(self):
        self.library.add(Upload(name="voice", data=b"audio", cut=CutWindow(start=1, end=2)))
        reopened = Library.open(Settings(root=self.root))
        self.assertEqual(reopened.edit_info("voice"), (CutWindow(start=1, end=2), b"audio"))

    def test_open_refuses_corrupt_metadata(self):
        (self.root / "cuts.json").write_text("][")
        with self.assertRaises(StartupCorruptionError):
            Library.open(Settings(root=self.root))

    def test_failed_metadata_write_keeps_old_cut(self):
        self.library.add(Upload(name="voice", data=b"x", cut=CutWindow(start=0, end=1)))
        (self.root / "cuts.json.tmp").mkdir()

        with self.assertRaises(StorageIOError):
            self.library.add(Upload(name="voice", data=b"x", cut=CutWindow(start=5, end=6)))

        self.assertFalse(self.library.lock.locked())
        self.assertEqual(self.library.get_cut("voice"), CutWindow(start=0, end=1))
        self.assertEqual(Library.open(Settings(root=self.root)).get_cut("voice"), CutWindow(start=0, end=1))

    def test_add_and_delete_are_atomic_across_both_stores(self):
        observed = []
        stop = threading.Event()

        def observer():
            while True:
                with self.library.lock:
                    names = set(self.library.recordings.list())
                    cuts = set(self.library.cuts.items())
                observed.append((names, cuts))
                if stop.is_set():
                    break

        def writer(prefix):
            for i in range(20):
                self.library.add(Upload(name=f"{prefix}{i}", data=b"n", cut=CutWindow(start=0, end=1)))
                self.library.delete(f"{prefix}{i}")

        watcher = threading.Thread(target=observer)
        watcher.start()
        threads = [threading.Thread(target=writer, args=(prefix,)) for prefix in ("left", "right")]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        stop.set()
        watcher.join()

        self.assertTrue(observed)
        for names, cuts in observed:
            self.assertEqual(names, cuts)


if __name__ == "__main__":
    unittest.main()
