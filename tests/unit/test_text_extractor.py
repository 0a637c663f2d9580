from __future__ import annotations

import logging

import pytest

from scenelens.domain.entities import OcrOutput
from scenelens.infrastructure.ocr.tesseract_engine import _ocr_output_from_data
from scenelens.services.text_extractor import TextExtractor, extract_potential_titles, split_words
from tests.fakes import FakeOcrEngine, make_image


class TestSplitWords:
    def test_drops_short_and_symbol_only_tokens(self):
        assert split_words("12 2024 !!! ok Seoul --- A1B") == ["Seoul", "A1B"]

    def test_empty_text(self):
        assert split_words("") == []


class TestExtractPotentialTitles:
    def test_uppercase_run_is_trimmed(self):
        assert extract_potential_titles("INCEPTION", ["INCEPTION"]) == ["INCEPTION"]

    def test_duplicates_collapse_and_longest_first(self):
        text = 'BLEACH "BLEACH"'
        titles = extract_potential_titles(text, split_words(text))
        assert titles == ['BLEACH "BLEACH"', "BLEACH"]

    def test_quoted_text_straight_and_curly(self):
        titles = extract_potential_titles('now showing "Dark" and “Money Heist”', [])
        assert "Dark" in titles
        assert "Money Heist" in titles

    def test_word_prefixes_need_two_words(self):
        assert extract_potential_titles("hello", ["hello"]) == []
        titles = extract_potential_titles("the night manager returns", ["the", "night", "manager", "returns"])
        assert titles == ["the night manager returns", "the night manager"]

    def test_short_script_runs_are_removed(self):
        assert extract_potential_titles("사랑 中国", []) == []

    def test_hangul_before_cjk_when_lengths_tie(self):
        text = "사랑의 三生三"
        assert extract_potential_titles(text, []) == ["사랑의", "三生三"]

    def test_output_has_no_duplicates_or_short_entries(self):
        text = 'WELCOME TO SEOUL\n"Crash Landing" 사랑의 불시착 exit'
        titles = extract_potential_titles(text, split_words(text))
        assert len(titles) == len(set(titles))
        assert all(len(t) >= 3 for t in titles)
        assert [len(t) for t in titles] == sorted((len(t) for t in titles), reverse=True)
        assert "WELCOME TO SEOUL" in titles
        assert "Crash Landing" in titles


class TestTextExtractor:
    @pytest.mark.asyncio
    async def test_normalizes_engine_confidence(self):
        image = make_image(b"frame")
        engine = FakeOcrEngine({b"frame": OcrOutput(text="  HELLO WORLD \n", confidence=87.0, words=[])})
        extractor = TextExtractor(engine=engine, languages="eng+kor+chi_sim+chi_tra")

        out = await extractor.extract(image)

        assert out.text == "HELLO WORLD"
        assert out.confidence == pytest.approx(0.87)
        assert out.words == ["HELLO", "WORLD"]
        assert engine.calls == ["eng+kor+chi_sim+chi_tra"]

    @pytest.mark.asyncio
    async def test_engine_failure_yields_empty_text(self, caplog):
        caplog.set_level(logging.WARNING)
        image = make_image(b"frame")
        engine = FakeOcrEngine({b"frame": RuntimeError("tesseract is not installed")})
        extractor = TextExtractor(engine=engine, languages="eng")

        out = await extractor.extract(image)

        assert out.text == ""
        assert out.confidence == 0.0
        assert out.words == []
        assert any(r.getMessage() == "ocr_failed" for r in caplog.records)


class TestTesseractOutput:
    def test_groups_words_into_lines_and_averages_confidence(self):
        data = {
            "text": ["", "Crash", "Landing", "on", "You", "noise"],
            "conf": ["-1", "90", "80", "70", "60", "-1"],
            "block_num": [1, 1, 1, 1, 1, 2],
            "par_num": [1, 1, 1, 1, 1, 1],
            "line_num": [0, 1, 1, 2, 2, 1],
        }
        out = _ocr_output_from_data(data)
        assert out.text == "Crash Landing\non You"
        assert out.confidence == pytest.approx(75.0)
        assert out.words == ["Crash", "Landing", "on", "You"]

    def test_no_words(self):
        out = _ocr_output_from_data({"text": [], "conf": []})
        assert out.text == ""
        assert out.confidence == 0.0
