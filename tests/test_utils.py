import os
import tempfile
import unittest
from pathlib import Path

from pymixplanner.audio import format_time
from pymixplanner.utils import (
    DEFAULT_OUTPUT_DIR,
    HASH_CHUNK_SIZE,
    compute_content_hash,
    find_audio_files,
    get_outputdir,
    is_audio_file,
    mk_outputdir,
    parse_track_metadata,
    track_from_file,
)


class MetadataTests(unittest.TestCase):
    def test_artist_and_title(self) -> None:
        self.assertEqual(parse_track_metadata("/music/Bicep - Glue.mp3"), ("Bicep", "Glue"))
        self.assertEqual(
            parse_track_metadata("Fred again.. - Delilah (pull me out of this).flac"),
            ("Fred again..", "Delilah (pull me out of this)"),
        )

    def test_no_separator(self) -> None:
        self.assertEqual(parse_track_metadata("untitled_04.wav"), ("", "untitled_04"))
        self.assertEqual(parse_track_metadata(" - Intro.wav"), ("", "- Intro"))

    def test_audio_extensions(self) -> None:
        self.assertTrue(is_audio_file("a.MP3"))
        self.assertTrue(is_audio_file("b.aif"))
        self.assertFalse(is_audio_file("cover.jpg"))
        self.assertFalse(is_audio_file("notes"))

    def test_format_time(self) -> None:
        self.assertEqual(format_time(75.5), "01:15.500")
        self.assertEqual(format_time(0.0), "00:00.000")


class FileTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        for name in ("b.wav", "a.mp3", "cover.jpg", "sub/c.flac", "sub/deeper/d.ogg"):
            path = self.root / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(b"data-" + name.encode())

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_find_flat(self) -> None:
        files = find_audio_files(self.root)
        self.assertEqual([os.path.basename(f) for f in files], ["a.mp3", "b.wav"])

    def test_find_recursive(self) -> None:
        files = find_audio_files(self.root, recursive=True)
        self.assertEqual(
            [os.path.relpath(f, self.root) for f in files],
            ["a.mp3", "b.wav", os.path.join("sub", "c.flac"), os.path.join("sub", "deeper", "d.ogg")],
        )

    def test_outputdir(self) -> None:
        self.assertEqual(get_outputdir(self.root), (self.root / DEFAULT_OUTPUT_DIR).resolve())
        self.assertEqual(get_outputdir(self.root / "a.mp3"), (self.root / DEFAULT_OUTPUT_DIR).resolve())
        custom = mk_outputdir(self.root, self.root / "exports" / "json")
        self.assertTrue(custom.is_dir())

    def test_hash_ignores_name(self) -> None:
        a = self.root / "one.wav"
        b = self.root / "two.wav"
        a.write_bytes(b"identical payload")
        b.write_bytes(b"identical payload")
        self.assertEqual(compute_content_hash(a), compute_content_hash(b))
        self.assertEqual(len(compute_content_hash(a)), 64)

    def test_hash_sees_tail_of_large_files(self) -> None:
        a = self.root / "big_a.wav"
        b = self.root / "big_b.wav"
        body = bytes(HASH_CHUNK_SIZE * 3)
        a.write_bytes(body + b"x")
        b.write_bytes(body + b"y")
        self.assertNotEqual(compute_content_hash(a), compute_content_hash(b))

    def test_hash_sees_size(self) -> None:
        a = self.root / "short.wav"
        b = self.root / "long.wav"
        a.write_bytes(bytes(10))
        b.write_bytes(bytes(11))
        self.assertNotEqual(compute_content_hash(a), compute_content_hash(b))

    def test_track_from_file(self) -> None:
        path = self.root / "Artist - Song.wav"
        path.write_bytes(b"abc")
        track = track_from_file(path)
        self.assertEqual((track.artist, track.title), ("Artist", "Song"))
        self.assertEqual(track.track_id, compute_content_hash(path))
        self.assertTrue(os.path.isabs(track.path))


if __name__ == "__main__":
    unittest.main()
