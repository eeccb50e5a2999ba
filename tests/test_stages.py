"""Tests for async stage orchestration with fake collaborators."""

import json

import pytest

from spec_reconciler.config import MIME_JSON, MIME_TEXT, NO_COMMON_OPTIONS
from spec_reconciler.llm import ConfigurationError, UpstreamError
from spec_reconciler.models import (
    CommonSpecEntry,
    ConfigKeySet,
    Reconciliation,
    SpecificationRecord,
    Tier,
)
from spec_reconciler.stages import (
    audit_specifications,
    extract_isq,
    find_common_specs,
    generate_buyer_specs,
    generate_stage1,
    reconcile,
)


def _text(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def _json(payload):
    return {"candidates": [{"content": {"parts": [{"json": payload}]}}]}


class FakeLLM:
    """Returns queued responses in order; queued exceptions are raised."""

    def __init__(self, *responses, api_key="test-key"):
        self.api_key = api_key
        self.responses = list(responses)
        self.calls = []

    async def generate(self, prompt, *, temperature, max_output_tokens, response_mime_type):
        self.calls.append({
            "prompt": prompt,
            "temperature": temperature,
            "max_output_tokens": max_output_tokens,
            "response_mime_type": response_mime_type,
        })
        result = self.responses.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


class FakeFetcher:
    def __init__(self, pages):
        self.pages = pages
        self.fetched = []

    async def fetch(self, url):
        self.fetched.append(url)
        page = self.pages.get(url)
        if isinstance(page, Exception):
            raise page
        return page


STAGE1_SPECS = [
    SpecificationRecord("Grade", ["304", "316", "MS"], Tier.PRIMARY),
    SpecificationRecord("Standard", ["IS 2062"], Tier.SECONDARY),
]

STAGE2_BUNDLE = ConfigKeySet(
    config=SpecificationRecord("Material Grade", ["304", "316"]),
    keys=[SpecificationRecord("Standard", ["IS 2062"])],
)


class TestGenerateStage1:
    @pytest.mark.asyncio
    async def test_success(self):
        output = {"seller_specs": [{"mcats": []}]}
        client = FakeLLM(_json(output))
        result = await generate_stage1({"mcats": [{"mcat_name": "SS Sheet"}]}, client)
        assert result == output
        call = client.calls[0]
        assert call["temperature"] == 0.4
        assert call["max_output_tokens"] == 4096
        assert call["response_mime_type"] == MIME_JSON
        assert "SS Sheet" in call["prompt"]

    @pytest.mark.asyncio
    async def test_recovered_from_text(self):
        client = FakeLLM(_text('```json\n{"seller_specs": []}\n```'))
        assert await generate_stage1({}, client) == {"seller_specs": []}

    @pytest.mark.asyncio
    async def test_missing_key(self):
        with pytest.raises(ConfigurationError):
            await generate_stage1({}, FakeLLM(api_key=""))

    @pytest.mark.asyncio
    async def test_quota_surfaced(self):
        client = FakeLLM(UpstreamError(429, "quota"))
        with pytest.raises(UpstreamError):
            await generate_stage1({}, client)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("response", [
        UpstreamError(500, "server error"),
        _text("I cannot help with that."),
        _json(["not", "a", "dict"]),
    ])
    async def test_fallback(self, response):
        assert await generate_stage1({}, FakeLLM(response)) == {"seller_specs": []}


class TestAuditSpecifications:
    SPECS = [
        SpecificationRecord("Grade", ["304", "SS304"], Tier.PRIMARY),
        SpecificationRecord("Width", ["1219 mm", "4 ft"]),
    ]

    @pytest.mark.asyncio
    async def test_results(self):
        payload = [
            {"specification": "Grade", "status": "incorrect", "explanation": "duplicate",
             "problematic_options": ["SS304"]},
            {"specification": "Width", "status": "Correct"},
        ]
        client = FakeLLM(_text(json.dumps(payload)))
        results = await audit_specifications("SS Sheet", self.SPECS, client)
        assert [(r.specification, r.status) for r in results] == [
            ("Grade", "incorrect"),
            ("Width", "correct"),
        ]
        assert results[0].problematic_options == ["SS304"]
        assert client.calls[0]["temperature"] == 0.3

    @pytest.mark.asyncio
    async def test_array_found_in_text(self):
        response = {"candidates": [{"content": {"parts": [
            {"json": {"unexpected": True}},
            {"text": '[{"specification": "Grade", "status": "incorrect"}]'},
        ]}}]}
        results = await audit_specifications("SS Sheet", self.SPECS, FakeLLM(response))
        assert [(r.specification, r.status) for r in results] == [("Grade", "incorrect")]

    @pytest.mark.asyncio
    async def test_unparseable_marks_all_correct(self):
        results = await audit_specifications("SS Sheet", self.SPECS, FakeLLM(_text("All good!")))
        assert [(r.specification, r.status) for r in results] == [
            ("Grade", "correct"),
            ("Width", "correct"),
        ]

    @pytest.mark.asyncio
    async def test_upstream_error_surfaced(self):
        with pytest.raises(UpstreamError):
            await audit_specifications("SS Sheet", self.SPECS, FakeLLM(UpstreamError(500, "boom")))

    @pytest.mark.asyncio
    async def test_missing_key(self):
        with pytest.raises(ConfigurationError):
            await audit_specifications("SS Sheet", self.SPECS, FakeLLM(api_key=""))


BLOCKS = """=== CONFIG SPECIFICATION ===
Name: Grade
Options: 304 | 316

=== KEY SPECIFICATION 1 ===
Name: Finish
Options: 2B | BA
"""


class TestExtractIsq:
    URLS = ["https://a.example/p", "https://b.example/p", "https://c.example/p"]

    @pytest.mark.asyncio
    async def test_extracts_bundle(self):
        fetcher = FakeFetcher({
            self.URLS[0]: "Grade 304 sheet, 2B finish",
            self.URLS[1]: ConnectionError("timeout"),
            self.URLS[2]: "",
        })
        client = FakeLLM(_text(BLOCKS))
        bundle = await extract_isq("SS Sheet", self.URLS, client, fetcher)

        assert bundle.config == SpecificationRecord("Grade", ["304", "316"])
        assert bundle.keys == [SpecificationRecord("Finish", ["2B", "BA"])]
        assert sorted(fetcher.fetched) == sorted(self.URLS)
        call = client.calls[0]
        assert "Grade 304 sheet" in call["prompt"]
        assert call["response_mime_type"] == MIME_TEXT
        assert call["max_output_tokens"] == 4000

    @pytest.mark.asyncio
    async def test_no_content_skips_llm(self):
        client = FakeLLM()
        bundle = await extract_isq("SS Sheet", self.URLS[:1], client, FakeFetcher({}))
        assert bundle.is_empty
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_unparseable_output(self):
        fetcher = FakeFetcher({self.URLS[0]: "content"})
        bundle = await extract_isq("SS Sheet", self.URLS[:1], FakeLLM(_text("nothing")), fetcher)
        assert bundle.is_empty

    @pytest.mark.asyncio
    async def test_upstream_error_falls_back(self):
        fetcher = FakeFetcher({self.URLS[0]: "content"})
        client = FakeLLM(UpstreamError(503, "unavailable"))
        assert (await extract_isq("SS Sheet", self.URLS[:1], client, fetcher)).is_empty

    @pytest.mark.asyncio
    async def test_quota_surfaced(self):
        fetcher = FakeFetcher({self.URLS[0]: "content"})
        with pytest.raises(UpstreamError):
            await extract_isq("SS Sheet", self.URLS[:1], FakeLLM(UpstreamError(429, "quota")), fetcher)

    @pytest.mark.asyncio
    async def test_missing_key(self):
        with pytest.raises(ConfigurationError):
            await extract_isq("SS Sheet", self.URLS, FakeLLM(api_key=""), FakeFetcher({}))


class TestFindCommonSpecs:
    @pytest.mark.asyncio
    async def test_llm_table(self):
        table = "Specification Name | Stage 1 Category | Common Options\nGrade | Primary | 304, 304, 316"
        client = FakeLLM(_text(table))
        entries = await find_common_specs(STAGE1_SPECS, STAGE2_BUNDLE, client)
        assert [(e.spec_name, e.common_options) for e in entries] == [("Grade", ["304", "316"])]
        assert client.calls[0]["temperature"] == 0.1

    @pytest.mark.asyncio
    async def test_local_without_client(self):
        entries = await find_common_specs(STAGE1_SPECS, STAGE2_BUNDLE)
        assert [(e.spec_name, e.common_options) for e in entries] == [
            ("Grade", ["304", "316"]),
            ("Standard", ["IS 2062"]),
        ]
        assert entries[0].source_a_unique_options == ["MS"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("response", [
        _text("No common specifications."),
        UpstreamError(500, "server error"),
    ])
    async def test_local_fallback(self, response):
        entries = await find_common_specs(STAGE1_SPECS, STAGE2_BUNDLE, FakeLLM(response))
        assert [e.spec_name for e in entries] == ["Grade", "Standard"]

    @pytest.mark.asyncio
    async def test_keyless_client_uses_local(self):
        client = FakeLLM(api_key="")
        entries = await find_common_specs(STAGE1_SPECS, STAGE2_BUNDLE, client)
        assert len(entries) == 2
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_quota_surfaced(self):
        with pytest.raises(UpstreamError):
            await find_common_specs(STAGE1_SPECS, STAGE2_BUNDLE, FakeLLM(UpstreamError(429, "quota")))

    @pytest.mark.asyncio
    async def test_nothing_to_compare(self):
        client = FakeLLM()
        assert await find_common_specs(STAGE1_SPECS, ConfigKeySet(), client) == []
        assert client.calls == []


class TestGenerateBuyerSpecs:
    STAGE1 = [
        SpecificationRecord("Grade", ["304", "316", "SS304", "430", "Other"], Tier.PRIMARY),
        SpecificationRecord("Finish", ["2B", "BA"], Tier.SECONDARY),
    ]

    @pytest.mark.asyncio
    async def test_local_enhancement(self):
        common = [CommonSpecEntry("Grade", "Primary", ["304"])]
        buyers = await generate_buyer_specs(common, self.STAGE1)
        assert buyers == [SpecificationRecord("Grade", ["304", "316", "430"])]

    @pytest.mark.asyncio
    async def test_sentinel_removed(self):
        common = [CommonSpecEntry("Finish", "Secondary", [NO_COMMON_OPTIONS])]
        buyers = await generate_buyer_specs(common, self.STAGE1)
        assert buyers == [SpecificationRecord("Finish", ["2B", "BA"])]

    @pytest.mark.asyncio
    async def test_llm_selection(self):
        client = FakeLLM(_json({"selected_options": ["SS304", " 430 ", "MS"]}))
        common = [CommonSpecEntry("Grade", "Primary", ["304"])]
        buyers = await generate_buyer_specs(common, self.STAGE1, client)
        assert buyers[0].options == ["304", "430", "MS"]
        call = client.calls[0]
        assert call["temperature"] == 0.2
        assert call["max_output_tokens"] == 2048
        assert call["response_mime_type"] == MIME_JSON

    @pytest.mark.asyncio
    async def test_llm_bad_selection_falls_back(self):
        client = FakeLLM(_text("sorry"))
        common = [CommonSpecEntry("Grade", "Primary", ["304"])]
        buyers = await generate_buyer_specs(common, self.STAGE1, client)
        assert buyers[0].options == ["304", "316", "430"]

    @pytest.mark.asyncio
    async def test_enough_common_options_skips_enhancement(self):
        client = FakeLLM()
        options = [f"{i} mm" for i in range(1, 11)]
        common = [CommonSpecEntry("Grade", "Primary", options)]
        buyers = await generate_buyer_specs(common, self.STAGE1, client)
        assert buyers[0].options == options[:8]
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_no_stage1_match_uses_common_only(self):
        common = [CommonSpecEntry("Color", "Primary", ["Red", "Other"])]
        buyers = await generate_buyer_specs(common, self.STAGE1)
        assert buyers == [SpecificationRecord("Color", ["Red"])]

    @pytest.mark.asyncio
    async def test_first_two_only_and_dedup(self):
        common = [
            CommonSpecEntry("Color", "Primary", ["Red", "Blue"]),
            CommonSpecEntry("Shade", "Primary", ["blue", "red"]),
            CommonSpecEntry("Width", "Primary", ["1 m"]),
        ]
        buyers = await generate_buyer_specs(common, [])
        assert [b.name for b in buyers] == ["Color"]

    @pytest.mark.asyncio
    async def test_quota_surfaced(self):
        common = [CommonSpecEntry("Grade", "Primary", ["304"])]
        with pytest.raises(UpstreamError):
            await generate_buyer_specs(common, self.STAGE1, FakeLLM(UpstreamError(429, "quota")))

    @pytest.mark.asyncio
    async def test_empty(self):
        assert await generate_buyer_specs([], self.STAGE1) == []


class TestReconcile:
    @pytest.mark.asyncio
    async def test_end_to_end_local(self):
        result = await reconcile(STAGE1_SPECS, STAGE2_BUNDLE)
        assert isinstance(result, Reconciliation)
        assert [(e.spec_name, e.common_options) for e in result.common_specs] == [
            ("Grade", ["304", "316"]),
            ("Standard", ["IS 2062"]),
        ]
        assert result.buyer_specs == [
            SpecificationRecord("Grade", ["304", "316", "MS"]),
            SpecificationRecord("Standard", ["IS 2062"]),
        ]
