"""
Frame Analyzer Tests
====================

Tests for the local OCR, remote endpoint, vision model and mock
analyzers. Network and tesseract are replaced by fakes.
"""

import asyncio
import json

import pytest

from gamewatch_agent.analysis import (
    AnalyzerStatus,
    LocalOcrAnalyzer,
    MockFrameAnalyzer,
    RecognizedText,
    RemoteFrameAnalyzer,
    VisionModelAnalyzer,
    VisionModelClient,
    parse_detection_payload,
)
from gamewatch_agent.analysis.ocr_engine import LOADING_REASON
from gamewatch_agent.errors import AnalyzerInitError, VisionModelError
from gamewatch_agent.models.detection import DetectionResult


class FakeRecognizer:
    """Recognizer returning fixed text and recording image shapes."""

    def __init__(self, text="", confidence=80.0, fail_load=False, fail_recognize=False):
        self.text = text
        self.confidence = confidence
        self.fail_load = fail_load
        self.fail_recognize = fail_recognize
        self.shapes = []

    def load(self):
        if self.fail_load:
            raise AnalyzerInitError("missing tesseract language data: chi_sim")

    def recognize(self, image):
        if self.fail_recognize:
            raise RuntimeError("tesseract crashed")
        self.shapes.append(image.shape)
        return RecognizedText(text=self.text, confidence=self.confidence)


class FakeResponse:
    def __init__(self, status_code=200, body=None, text=None, content_type="application/json"):
        self.status_code = status_code
        self.headers = {"Content-Type": content_type}
        self._body = body
        self.text = text if text is not None else json.dumps(body)

    def json(self):
        if self._body is None:
            raise ValueError("no json")
        return self._body


class FakeSession:
    """requests.Session stand-in returning a canned response."""

    def __init__(self, response):
        self.response = response
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


def completion(content):
    return {"choices": [{"message": {"content": content}}]}


class TestParseDetectionPayload:
    """Tests for reply parsing."""

    def test_plain_json(self):
        result = parse_detection_payload(
            '{"isDisconnected": true, "confidence": 0.92, "reason": "Connection Lost"}'
        )
        assert result.is_disconnected is True
        assert result.confidence == pytest.approx(0.92)

    def test_fenced_json(self):
        text = '```json\n{"isDisconnected": false, "confidence": 0.1, "reason": "HUD"}\n```'
        result = parse_detection_payload(text)
        assert result.is_disconnected is False
        assert result.reason == "HUD"

    def test_percent_confidence_is_scaled(self):
        result = parse_detection_payload(
            '{"isDisconnected": true, "confidence": 85, "reason": "x"}'
        )
        assert result.confidence == pytest.approx(0.85)

    @pytest.mark.parametrize("raw, expected", [
        (1.2, 1.0),
        (1.5, 1.0),
        (-0.2, 0.0),
        (1.0, 1.0),
        (40, 0.4),
        (250, 1.0),
    ])
    def test_confidence_overshoot_is_clamped(self, raw, expected):
        result = DetectionResult(is_disconnected=True, confidence=raw, reason="x")
        assert result.confidence == pytest.approx(expected)

    @pytest.mark.parametrize("text", ["", "not json", "[1, 2]", '{"confidence": 0.5}'])
    def test_unusable_reply_raises(self, text):
        with pytest.raises(ValueError):
            parse_detection_payload(text)


class TestLocalOcrAnalyzer:
    """Tests for LocalOcrAnalyzer readiness and matching."""

    def test_loading_placeholder_until_ready(self, sample_frame):
        async def scenario():
            analyzer = LocalOcrAnalyzer(recognizer=FakeRecognizer(text="网络错误"))
            first = await analyzer.analyze(sample_frame)
            status = await analyzer.wait_ready(timeout=5)
            second = await analyzer.analyze(sample_frame)
            return first, status, second

        first, status, second = asyncio.run(scenario())

        assert first.reason == LOADING_REASON
        assert first.is_disconnected is False
        assert first.analysis_failed is False
        assert status is AnalyzerStatus.READY
        assert second.is_disconnected is True

    def test_init_failure_is_permanent(self, sample_frame):
        async def scenario():
            analyzer = LocalOcrAnalyzer(recognizer=FakeRecognizer(fail_load=True))
            status = await analyzer.wait_ready(timeout=5)
            results = [await analyzer.analyze(sample_frame) for _ in range(2)]
            return status, results

        status, results = asyncio.run(scenario())

        assert status is AnalyzerStatus.FAILED
        for result in results:
            assert result.reason.startswith("OCR Init Error: ")
            assert "chi_sim" in result.reason
            assert result.confidence == 0.0
            assert result.analysis_failed is True

    def test_match_attaches_processed_image(self, sample_frame):
        recognizer = FakeRecognizer(text="请 重 新 登 录", confidence=30.0)

        async def scenario():
            analyzer = LocalOcrAnalyzer(recognizer=recognizer)
            await analyzer.wait_ready(timeout=5)
            return await analyzer.analyze(sample_frame)

        result = asyncio.run(scenario())

        assert result.is_disconnected is True
        assert result.confidence == pytest.approx(0.85)
        assert result.reason == 'Detected: "请重新登录"'
        assert result.processed_image is not None
        assert recognizer.shapes == [(144, 280, 3)]

    def test_focus_mode_uses_tight_crop(self, sample_frame):
        recognizer = FakeRecognizer(text="")

        async def scenario():
            analyzer = LocalOcrAnalyzer(recognizer=recognizer)
            await analyzer.wait_ready(timeout=5)
            return await analyzer.analyze(sample_frame, focus_mode=True)

        result = asyncio.run(scenario())

        assert result.is_disconnected is False
        assert recognizer.shapes == [(144, 240, 3)]

    def test_recognizer_error_becomes_failure(self, sample_frame):
        async def scenario():
            analyzer = LocalOcrAnalyzer(recognizer=FakeRecognizer(fail_recognize=True))
            await analyzer.wait_ready(timeout=5)
            result = await analyzer.analyze(sample_frame)
            return result, analyzer.get_metrics()

        result, metrics = asyncio.run(scenario())

        assert result.reason == "OCR Failed: tesseract crashed"
        assert result.analysis_failed is True
        assert metrics["error_count"] == 1


class TestRemoteFrameAnalyzer:
    """Tests for RemoteFrameAnalyzer."""

    def test_success(self, sample_frame):
        session = FakeSession(FakeResponse(body={
            "isDisconnected": True, "confidence": 0.9, "reason": "Connection Lost",
        }))
        analyzer = RemoteFrameAnalyzer("http://analysis/api/analyze", session=session)

        result = asyncio.run(analyzer.analyze(sample_frame))

        assert result.is_disconnected is True
        url, kwargs = session.calls[0]
        assert url == "http://analysis/api/analyze"
        assert kwargs["json"] == {"base64Image": sample_frame.image_b64}

    def test_non_2xx_is_failure(self, sample_frame):
        session = FakeSession(FakeResponse(status_code=502, body={"error": "bad gateway"}))
        analyzer = RemoteFrameAnalyzer("http://analysis/api/analyze", session=session)

        result = asyncio.run(analyzer.analyze(sample_frame))

        assert result.reason.startswith("Remote Analysis Failed: ")
        assert "502" in result.reason
        assert result.is_disconnected is False
        assert result.analysis_failed is True

    def test_non_json_content_type_is_failure(self, sample_frame):
        session = FakeSession(FakeResponse(text="<html>oops</html>", content_type="text/html"))
        analyzer = RemoteFrameAnalyzer("http://analysis/api/analyze", session=session)

        result = asyncio.run(analyzer.analyze(sample_frame))

        assert result.reason.startswith("Remote Analysis Failed: ")
        assert analyzer.get_metrics() == {"call_count": 1, "error_count": 1}

    def test_fenced_reply_is_accepted(self, sample_frame):
        text = '```json\n{"isDisconnected": false, "confidence": 0.2, "reason": "ok"}\n```'
        session = FakeSession(FakeResponse(text=text))
        analyzer = RemoteFrameAnalyzer("http://analysis/api/analyze", session=session)

        result = asyncio.run(analyzer.analyze(sample_frame))

        assert result.analysis_failed is False
        assert result.reason == "ok"


class TestVisionModel:
    """Tests for VisionModelClient and VisionModelAnalyzer."""

    def test_missing_api_key_rejected(self):
        with pytest.raises(VisionModelError):
            VisionModelClient(api_key="")

    def test_request_shape(self):
        session = FakeSession(FakeResponse(body=completion(
            '{"isDisconnected": true, "confidence": 0.8, "reason": "Network Error"}'
        )))
        client = VisionModelClient(api_key="sk-test", session=session)

        result = client.detect("data:image/jpeg;base64,AAAA")

        assert result.is_disconnected is True
        _, kwargs = session.calls[0]
        assert kwargs["headers"]["Authorization"] == "Bearer sk-test"
        image_part = kwargs["json"]["messages"][0]["content"][1]
        assert image_part["image_url"]["url"] == "data:image/jpeg;base64,AAAA"
        assert kwargs["json"]["response_format"] == {"type": "json_object"}

    def test_fenced_completion(self):
        session = FakeSession(FakeResponse(body=completion(
            '```json\n{"isDisconnected": false, "confidence": 0.95, "reason": "HUD visible"}\n```'
        )))
        client = VisionModelClient(api_key="sk-test", session=session)

        assert client.detect("AAAA").reason == "HUD visible"

    def test_http_error_raises(self):
        session = FakeSession(FakeResponse(status_code=429, text="rate limited"))
        client = VisionModelClient(api_key="sk-test", session=session)

        with pytest.raises(VisionModelError):
            client.detect("AAAA")

    def test_analyzer_wraps_errors(self, sample_frame):
        session = FakeSession(FakeResponse(body=completion("")))
        analyzer = VisionModelAnalyzer(VisionModelClient(api_key="sk-test", session=session))

        result = asyncio.run(analyzer.analyze(sample_frame))

        assert result.reason.startswith("Analysis Failed: ")
        assert result.analysis_failed is True


class TestMockFrameAnalyzer:
    """Tests for the scripted analyzer."""

    def test_script_then_repeat_last(self, sample_frame, disconnected_result, connected_result):
        analyzer = MockFrameAnalyzer([connected_result, disconnected_result])

        async def scenario():
            return [await analyzer.analyze(sample_frame) for _ in range(3)]

        results = asyncio.run(scenario())

        assert [r.is_disconnected for r in results] == [False, True, True]
        assert analyzer.call_count == 3

    def test_empty_script_is_connected(self, sample_frame):
        result = asyncio.run(MockFrameAnalyzer().analyze(sample_frame))
        assert isinstance(result, DetectionResult)
        assert result.is_disconnected is False
