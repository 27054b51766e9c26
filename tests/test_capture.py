import os
import tempfile
import unittest

import numpy as np
import soundfile as sf

from patchrack.capture import MemoryCapture, WavCapture


class TestMemoryCapture(unittest.TestCase):
    def test_empty(self):
        self.assertEqual(MemoryCapture().samples().shape, (0, 2))

    def test_blocks_are_copied_and_joined(self):
        capture = MemoryCapture()
        block = np.ones((4, 2), dtype=np.int16)
        capture.write(block)
        block[:] = 7
        capture.write(block)
        samples = capture.samples()
        self.assertEqual(samples.shape, (8, 2))
        self.assertTrue(np.all(samples[:4] == 1))
        self.assertTrue(np.all(samples[4:] == 7))


class TestWavCapture(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.path = os.path.join(self.tmpdir.name, 'out.wav')

    def tearDown(self):
        self.tmpdir.cleanup()

    def test_stereo_round_trip(self):
        frames = np.array([[0, 0], [1000, -1000], [32767, -32768]], dtype=np.int16)
        with WavCapture(self.path, 48000) as capture:
            capture.write(frames)
            capture.write(frames)

        data, rate = sf.read(self.path, dtype='int16')
        self.assertEqual(rate, 48000)
        np.testing.assert_array_equal(data, np.concatenate([frames, frames]))

    def test_mono_keeps_left_channel(self):
        frames = np.array([[5, 9], [-5, -9]], dtype=np.int16)
        with WavCapture(self.path, 44100, channels=1) as capture:
            capture.write(frames)

        data, _ = sf.read(self.path, dtype='int16')
        np.testing.assert_array_equal(data, [5, -5])

    def test_unsupported_channel_count(self):
        with self.assertRaises(ValueError):
            WavCapture(self.path, 48000, channels=3)


if __name__ == '__main__':
    unittest.main()
