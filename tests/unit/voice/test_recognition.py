"""Tests for recognition events and voice selection."""

import pytest

from fintrack.voice.recognition.base import RecognitionErrorCode, pick_voice
from fintrack.voice.recognition.web_speech_config import process_web_speech_result


class TestWebSpeechResults:

    def test_best_alternative_per_result(self):
        event = {
            "results": [
                {"isFinal": True, "alternatives": [
                    {"transcript": "gastei 50", "confidence": 0.91},
                    {"transcript": "gastei 15", "confidence": 0.4},
                ]},
                {"isFinal": False, "alternatives": [{"transcript": " reais"}]},
            ]
        }
        fragments = process_web_speech_result(event)
        assert [(f.transcript, f.is_final) for f in fragments] == [
            ("gastei 50", True),
            (" reais", False),
        ]
        assert fragments[0].confidence == 0.91
        assert fragments[1].confidence == 0.0

    def test_flat_entries(self):
        fragments = process_web_speech_result({"results": [{"transcript": "saldo", "isFinal": True}]})
        assert fragments[0].transcript == "saldo"
        assert fragments[0].is_final

    def test_empty_event(self):
        assert process_web_speech_result({}) == []


class TestErrorCodes:

    @pytest.mark.parametrize("raw,expected", [
        ("no-speech", RecognitionErrorCode.NO_SPEECH),
        ("not-allowed", RecognitionErrorCode.NOT_ALLOWED),
        ("network", RecognitionErrorCode.NETWORK),
        ("language-not-supported", RecognitionErrorCode.OTHER),
        (RecognitionErrorCode.ABORTED, RecognitionErrorCode.ABORTED),
    ])
    def test_parse(self, raw, expected):
        assert RecognitionErrorCode.parse(raw) == expected


class TestPickVoice:

    def test_preference_order(self):
        available = ["Google português do Brasil", "Microsoft Maria - Portuguese (Brazil)"]
        assert pick_voice(available, ["Maria", "Google"]) == "Microsoft Maria - Portuguese (Brazil)"

    def test_case_insensitive(self):
        assert pick_voice(["luciana"], ["Luciana"]) == "luciana"

    def test_none_available(self):
        assert pick_voice([], ["Maria"]) is None
        assert pick_voice(["Samantha"], ["Maria"]) is None
