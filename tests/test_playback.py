import threading
import unittest
from unittest.mock import MagicMock, patch

import numpy as np

from recordathon.editor import EditSession
from recordathon.playback import PlaybackController, PlaybackState, SoundDevicePlayer
from recordathon.sound import Sound
from tests.helpers import tone, wav_bytes


class FakePlayer:
    def __init__(self):
        self.played = []
        self.stopped = 0
        self.on_finished = None

    def play(self, wav_bytes, on_finished):
        self.played.append(wav_bytes)
        self.on_finished = on_finished

    def stop(self):
        self.stopped += 1


class TestPlaybackController(unittest.TestCase):
    def setUp(self):
        self.sound = Sound.from_bytes(wav_bytes(tone(2.0, rate=8000), 8000))
        self.session = EditSession(self.sound, start=0.5, end=1.0)
        self.player = FakePlayer()
        self.controller = PlaybackController(self.session, self.player)

    def test_idle_to_playing_plays_cropped_window(self):
        self.assertIs(self.controller.toggle(), PlaybackState.PLAYING)
        self.assertTrue(self.controller.playing)
        played = Sound.from_bytes(self.player.played[0])
        self.assertAlmostEqual(played.duration, 0.5)

    def test_toggle_stops(self):
        self.controller.toggle()
        self.assertIs(self.controller.toggle(), PlaybackState.IDLE)
        self.assertEqual(self.player.stopped, 1)
        self.assertEqual(len(self.player.played), 1)

    def test_natural_end_returns_to_idle(self):
        self.controller.toggle()
        self.player.on_finished()
        self.assertIs(self.controller.state, PlaybackState.IDLE)
        self.assertTrue(self.controller.wait(0))

    def test_stale_completion_is_ignored(self):
        self.controller.toggle()
        stale = self.player.on_finished
        self.controller.toggle()
        self.controller.toggle()
        stale()
        self.assertIs(self.controller.state, PlaybackState.PLAYING)

    def test_replay_uses_current_cut(self):
        self.controller.toggle()
        self.controller.toggle()
        self.session.end = 2.0
        self.controller.toggle()
        self.assertAlmostEqual(Sound.from_bytes(self.player.played[-1]).duration, 1.5)

    def test_player_finishing_immediately(self):
        player = MagicMock()
        player.play.side_effect = lambda data, done: done()
        controller = PlaybackController(self.session, player)
        self.assertIs(controller.toggle(), PlaybackState.IDLE)

    def test_player_failure_leaves_controller_idle(self):
        player = MagicMock()
        player.play.side_effect = RuntimeError("no output device")
        controller = PlaybackController(self.session, player)
        with self.assertRaises(RuntimeError):
            controller.toggle()
        self.assertIs(controller.state, PlaybackState.IDLE)
        self.assertTrue(controller.wait(0))

        player.play.side_effect = None
        self.assertIs(controller.toggle(), PlaybackState.PLAYING)
        player.stop.assert_not_called()


class TestSoundDevicePlayer(unittest.TestCase):
    def test_plays_and_reports_completion(self):
        fake_sd = MagicMock()
        with patch.dict("sys.modules", {"sounddevice": fake_sd}):
            player = SoundDevicePlayer()
        finished = threading.Event()
        samples = tone(0.1, rate=8000)

        player.play(wav_bytes(samples, 8000), finished.set)

        args, kwargs = fake_sd.play.call_args
        np.testing.assert_array_equal(args[0], samples)
        self.assertEqual(kwargs["samplerate"], 8000)
        self.assertTrue(finished.wait(2.0))
        fake_sd.wait.assert_called_once()

        player.stop()
        fake_sd.stop.assert_called_once()


if __name__ == "__main__":
    unittest.main()
