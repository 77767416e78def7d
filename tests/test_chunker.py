from __future__ import annotations

import re
import unittest

from ig_import.chunker import label_segments, segment_text, split_text
from ig_import.errors import TextTooLongError

# 25 characters, ends on a sentence boundary.
_SENTENCE = "Bodyweight training day. "
_MARKER_RE = re.compile(r" \((\d+)/(\d+)\)$")


def _strip_marker(text: str) -> str:
    return _MARKER_RE.sub("", text)


def _words(text: str) -> list[str]:
    return text.split()


class TestSplitText(unittest.TestCase):
    def test_short_text_is_single_unmarked_chunk(self) -> None:
        text = "  Leg day, again!  "
        chunks = split_text(text, 500)

        self.assertEqual(len(chunks), 1)
        self.assertEqual(chunks[0].text, text)
        self.assertEqual((chunks[0].index, chunks[0].total), (1, 1))

    def test_text_at_exact_limit_is_not_split(self) -> None:
        text = "x" * 500
        chunks = split_text(text, 500)
        self.assertEqual([c.text for c in chunks], [text])

    def test_whitespace_over_limit_is_single_empty_chunk(self) -> None:
        for text in (" " * 600, "\n" * 600):
            chunks = split_text(text, 500)
            self.assertEqual(len(chunks), 1)
            self.assertEqual(chunks[0].text, "")
            self.assertEqual((chunks[0].index, chunks[0].total), (1, 1))

    def test_1200_chars_at_500_gives_three_marked_chunks(self) -> None:
        text = _SENTENCE * 48
        self.assertEqual(len(text), 1200)

        chunks = split_text(text, 500)

        self.assertEqual(len(chunks), 3)
        for i, chunk in enumerate(chunks, start=1):
            self.assertLessEqual(len(chunk.text), 500)
            self.assertTrue(chunk.text.endswith(f" ({i}/3)"), chunk.text[-12:])
            self.assertEqual((chunk.index, chunk.total), (i, 3))

        # Full sentences only, split after the period.
        self.assertTrue(_strip_marker(chunks[0].text).endswith("day."))
        self.assertTrue(_strip_marker(chunks[1].text).endswith("day."))

    def test_chunks_cover_text_in_order(self) -> None:
        text = (
            "Started the morning with muscle-ups, then handstand practice; felt strong! "
            "Did I hold the planche? Not yet, but close. "
        ) * 20
        chunks = split_text(text, 120)

        self.assertGreater(len(chunks), 1)
        self.assertLess(len(chunks), 100)
        for chunk in chunks:
            self.assertLessEqual(len(chunk.text), 120)
        joined = " ".join(_strip_marker(c.text) for c in chunks)
        self.assertEqual(_words(joined), _words(text))

    def test_marker_follows_trimmed_segment(self) -> None:
        text = ("One two three four five six. " * 10).strip()
        chunks = split_text(text, 60)

        n = len(chunks)
        for i, chunk in enumerate(chunks, start=1):
            m = _MARKER_RE.search(chunk.text)
            self.assertIsNotNone(m)
            assert m is not None
            self.assertEqual((int(m.group(1)), int(m.group(2))), (i, n))
            body = chunk.text[: m.start()]
            self.assertEqual(body, body.strip())

    def test_text_without_punctuation_splits_after_words(self) -> None:
        text = "pullups " * 200
        chunks = split_text(text, 500)

        self.assertGreater(len(chunks), 1)
        for chunk in chunks:
            self.assertLessEqual(len(chunk.text), 500)
            self.assertTrue(_strip_marker(chunk.text).endswith("pullups"))
        joined = " ".join(_strip_marker(c.text) for c in chunks)
        self.assertEqual(_words(joined), _words(text))

    def test_text_without_any_boundary_is_cut_hard(self) -> None:
        text = "x" * 1200
        chunks = split_text(text, 500)

        self.assertEqual([len(_strip_marker(c.text)) for c in chunks], [491, 491, 218])
        self.assertEqual("".join(_strip_marker(c.text) for c in chunks), text)

    def test_too_many_chunks_raises(self) -> None:
        text = "x" * 2000
        with self.assertRaises(TextTooLongError) as ctx:
            split_text(text, 20)

        self.assertEqual(ctx.exception.text_length, 2000)
        self.assertGreaterEqual(ctx.exception.chunk_count, 100)

    def test_ninety_nine_chunks_is_allowed(self) -> None:
        text = "x" * (11 * 99)
        chunks = split_text(text, 20)

        self.assertEqual(len(chunks), 99)
        self.assertTrue(chunks[-1].text.endswith(" (99/99)"))
        self.assertTrue(all(len(c.text) <= 20 for c in chunks))


class TestSegmentText(unittest.TestCase):
    def test_prefers_last_sentence_boundary_in_window(self) -> None:
        text = "Warm up, then sets. Cool down after"
        self.assertEqual(segment_text(text, 22), ["Warm up, then sets.", "Cool down after"])

    def test_period_inside_number_is_not_a_boundary(self) -> None:
        text = "Ran 3.5 km then rested"
        self.assertEqual(segment_text(text, 8), ["Ran 3.5", "km then", "rested"])

    def test_tail_without_boundary_is_kept(self) -> None:
        self.assertEqual(segment_text("Done. and then some", 10), ["Done.", "and then", "some"])

    def test_rejects_non_positive_size(self) -> None:
        with self.assertRaises(ValueError):
            segment_text("abc", 0)


class TestLabelSegments(unittest.TestCase):
    def test_labels_with_position_and_total(self) -> None:
        chunks = label_segments(["first. ", " second"])
        self.assertEqual([c.text for c in chunks], ["first. (1/2)", "second (2/2)"])
        self.assertEqual([c.index for c in chunks], [1, 2])
        self.assertEqual({c.total for c in chunks}, {2})


if __name__ == "__main__":
    unittest.main()
